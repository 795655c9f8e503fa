"""Access control — workspace membership and role checks.

Every permission is a plain set of roles looked up in PERMISSIONS; an
empty set means "any member of the workspace". Role rank is exposed for
display (sorting member lists) and is never used to authorize.

Nothing here writes to the session.
"""

from app.errors import InsufficientRole, NotMember, StateError
from app.models.workspace import WorkspaceMember

ROLE_RANK = {"owner": 4, "admin": 3, "member": 2, "guest": 1}

ANY_MEMBER = frozenset()
MANAGERS = frozenset({"owner", "admin"})
OWNER_ONLY = frozenset({"owner"})

PERMISSIONS = {
    # Workspace
    "workspace.view": ANY_MEMBER,
    "workspace.update": MANAGERS,
    "workspace.delete": OWNER_ONLY,
    "workspace.transfer": OWNER_ONLY,
    "member.manage": MANAGERS,
    "invite.create": MANAGERS,
    # Boards
    "board.create": MANAGERS,
    "board.view": ANY_MEMBER,
    "board.update": ANY_MEMBER,
    "board.trash": MANAGERS,
    "board.restore": MANAGERS,
    "board.delete": MANAGERS,
    "board.view_trash": MANAGERS,
    # Lists
    "list.manage": ANY_MEMBER,
    # Cards
    "card.create": MANAGERS,
    "card.update": ANY_MEMBER,
    "card.restore": ANY_MEMBER,
    "card.delete_any": MANAGERS,
    "card.assign": ANY_MEMBER,
    # Comments / labels
    "comment.create": ANY_MEMBER,
    "comment.delete_any": MANAGERS,
    "label.manage": ANY_MEMBER,
    # Reports
    "report.view": MANAGERS,
}

ASSIGNABLE_ROLES = ("admin", "member", "guest")


def get_membership(session, user_id, workspace_id):
    """Return the WorkspaceMember row or None."""
    return (
        session.query(WorkspaceMember)
        .filter_by(user_id=user_id, workspace_id=workspace_id)
        .first()
    )


def authorize(session, user_id, workspace_id, required_roles=ANY_MEMBER):
    """Resolve the caller's membership and check it against a role set.

    Args:
        session: SQLAlchemy session.
        user_id: Acting user's id.
        workspace_id: Workspace the action targets.
        required_roles: Iterable of allowed roles; empty means any member.

    Returns:
        The caller's WorkspaceMember row.

    Raises:
        NotMember: No membership row exists.
        InsufficientRole: The member's role is not in `required_roles`.
    """
    member = get_membership(session, user_id, workspace_id)
    if member is None:
        raise NotMember()
    if required_roles and member.role not in required_roles:
        raise InsufficientRole()
    return member


def require(session, user_id, workspace_id, permission):
    """authorize() using the role set registered for `permission`."""
    return authorize(session, user_id, workspace_id, PERMISSIONS[permission])


def has_permission(member, permission):
    roles = PERMISSIONS[permission]
    return not roles or member.role in roles


def check_member_change(actor, target):
    """Guard role changes and removals made through member management.

    Raises:
        InsufficientRole: when the actor targets themselves, the workspace
            owner, or (as an admin) another admin.
    """
    if actor.user_id == target.user_id:
        raise InsufficientRole("You cannot change your own membership here.")
    if target.role == "owner":
        raise InsufficientRole("The workspace owner's membership cannot be modified.")
    if actor.role == "admin" and target.role == "admin":
        raise InsufficientRole("Admins cannot modify other admins.")


def check_can_leave(member):
    if member.role == "owner":
        raise StateError(
            "The workspace owner cannot leave. Transfer ownership or delete the workspace."
        )
