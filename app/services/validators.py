"""Input cleaning shared by the service layer.

All user text goes through bleach.clean() with no allowed tags. Every
helper raises ValidationError, so services can validate their whole
input before touching the database.
"""

from datetime import datetime, timezone

import bleach

from app.errors import ValidationError


def sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(str(text), tags=[], strip=True).strip()


def require_text(value, field, max_length=None, min_length=1):
    text = sanitize(value) if value is not None else ""
    if len(text) < min_length:
        if min_length <= 1:
            raise ValidationError(f"{field} is required.")
        raise ValidationError(f"{field} must be at least {min_length} characters.")
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters.")
    return text


def optional_text(value, field, max_length=None):
    if value is None:
        return None
    text = sanitize(value)
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters.")
    return text or None


def choice(value, field, allowed):
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(allowed)}"
        )
    return value


def parse_datetime(value, field):
    """ISO 8601 string -> aware UTC datetime. None and "" mean no value."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"{field} must be an ISO 8601 datetime.")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def non_negative_int(value, field):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer.")
    return value


def require_id(value, field):
    """Entity ids are non-empty strings; JSON numbers or objects are rejected."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string id.")
    return value


def id_list(value, field):
    """A JSON array of ids, de-duplicated in order. None means empty."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list of ids.")
    for item in value:
        require_id(item, field)
    return list(dict.fromkeys(value))


def as_utc(value):
    """SQLite hands back naive datetimes; Postgres aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
