"""Service-layer exceptions.

Services raise these; the JSON error handler registered in create_app()
turns them into `{"error": message, ...}` responses with `status_code`.
Every user-invoked mutation fails synchronously with one of these, and
nothing here is retried automatically.
"""


class ServiceError(Exception):
    status_code = 400
    default_message = "Request failed."

    def __init__(self, message=None, **extra):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.extra = extra

    def to_dict(self):
        payload = {"error": self.message}
        payload.update(self.extra)
        return payload


class ValidationError(ServiceError):
    """Malformed input. Raised before any lookup happens."""

    status_code = 400
    default_message = "Invalid input."


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found."


class NotMember(ServiceError):
    status_code = 403
    default_message = "You are not a member of this workspace."


class InsufficientRole(ServiceError):
    status_code = 403
    default_message = "Your workspace role does not allow this action."


class Conflict(ServiceError):
    """Duplicate name, existing assignment, pending invitation."""

    status_code = 409
    default_message = "Conflict."


class StateError(ServiceError):
    """Entity is in the wrong lifecycle state for the operation."""

    status_code = 409
    default_message = "Operation not allowed in the current state."


class InvitationExpired(StateError):
    """The invitation lapsed. Its `expired` status is flushed before raising."""

    default_message = "This invitation has expired."


class HasChildren(ServiceError):
    """Deletion blocked because dependent items still exist."""

    status_code = 409
    default_message = "Item still has children."

    def __init__(self, count, message=None):
        super().__init__(message, count=count)
        self.count = count


class CrossScopeReorder(ServiceError):
    status_code = 400
    default_message = "Some items do not belong to this scope."


class DuplicateOrder(ServiceError):
    status_code = 400
    default_message = "Duplicate order indices in request."


class TargetScopeMismatch(ServiceError):
    status_code = 400
    default_message = "Target is not a valid destination for this item."


class EmailDeliveryError(Exception):
    """SMTP hand-off failed (or mail is not configured)."""
