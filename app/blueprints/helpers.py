"""Small request helpers shared by the JSON API blueprints."""

from flask import current_app, request

from app.errors import ValidationError


def json_body():
    """Request JSON as a dict; a missing or non-object body reads as {}."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def int_arg(name, default, minimum=1, maximum=None):
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"'{name}' must be an integer.")
    if value < minimum:
        raise ValidationError(f"'{name}' must be at least {minimum}.")
    if maximum is not None:
        value = min(value, maximum)
    return value


def pagination(default_limit=20, max_limit=100):
    return int_arg("page", 1), int_arg("limit", default_limit, maximum=max_limit)


def page_meta(total, page, limit):
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }


def retention_days():
    return current_app.config.get("TRASH_RETENTION_DAYS", 15)
