"""Shared test fixtures for the Taskboard API test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off,
  background tasks inline, email suppressed)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- make_user: factory for users
- seed_data: owner/admin/member/guest in one workspace with a board
- login: log a test client in as a given email
"""

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from app.extensions import db as _db
from app.models.user import User
from app.models.workspace import WorkspaceMember
from app.services.board_service import create_board
from app.services.workspace_service import create_workspace

PASSWORD = "password123"


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def make_user(db_session):
    """Factory: make_user("a@test.com") -> User (flushed)."""

    def _make(email, full_name=None):
        user = User(
            email=email,
            password_hash=generate_password_hash(PASSWORD),
            full_name=full_name or email.split("@")[0].title(),
        )
        db_session.add(user)
        db_session.flush()
        return user

    return _make


@pytest.fixture
def seed_data(db_session, make_user):
    """One workspace with a member of every role and a board with the
    default Todo / In Progress / Done lists.

    Returns plain IDs so tests can use them across requests.
    """
    owner = make_user("owner@test.com", "Olivia Owner")
    admin = make_user("admin@test.com", "Adam Admin")
    member = make_user("member@test.com", "Mia Member")
    guest = make_user("guest@test.com", "Gus Guest")
    outsider = make_user("outsider@test.com", "Otto Outsider")

    workspace = create_workspace(db_session, owner.id, "Acme Projects")
    for user, role in ((admin, "admin"), (member, "member"), (guest, "guest")):
        db_session.add(WorkspaceMember(user_id=user.id, workspace_id=workspace.id, role=role))
    db_session.flush()

    board = create_board(db_session, owner.id, workspace.id, "Website", key_slug="WEB")
    lists = board.lists.all()
    db_session.commit()

    return {
        "owner_id": owner.id,
        "admin_id": admin.id,
        "member_id": member.id,
        "guest_id": guest.id,
        "outsider_id": outsider.id,
        "workspace_id": workspace.id,
        "board_id": board.id,
        "todo_id": lists[0].id,
        "doing_id": lists[1].id,
        "done_id": lists[2].id,
    }


@pytest.fixture
def login(client):
    """login("member@test.com") logs the shared test client in."""

    def _login(email, password=PASSWORD):
        resp = client.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return resp

    return _login
