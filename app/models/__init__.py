# Models package — import all models here so Alembic can discover them.

from app.models.user import User  # noqa: F401
from app.models.workspace import Workspace, WorkspaceMember  # noqa: F401
from app.models.invite import WorkspaceInvitation  # noqa: F401
from app.models.board import Board, BoardList, Label  # noqa: F401
from app.models.card import Card, CardMember, CardLabel, Comment  # noqa: F401
from app.models.activity import ActivityLog  # noqa: F401
from app.models.notification import Notification, NotificationSetting  # noqa: F401
