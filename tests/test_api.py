"""End-to-end tests through the JSON API."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from app.models.activity import ActivityLog
from app.models.invite import WorkspaceInvitation
from app.models.notification import Notification
from app.services import invite_service


@pytest.fixture(autouse=True)
def no_mail():
    with patch("app.services.notification_service.send_email") as mock_send:
        yield mock_send


class TestAuth:

    def test_register_and_me(self, client):
        resp = client.post("/auth/register", json={
            "email": "New@Test.com", "password": "longenough", "full_name": "New Person",
        })
        assert resp.status_code == 201
        assert resp.get_json()["user"]["email"] == "new@test.com"

        me = client.get("/auth/me")
        assert me.get_json()["user"]["full_name"] == "New Person"

    def test_register_validation(self, client):
        resp = client.post("/auth/register", json={"email": "bad", "password": "short"})
        assert resp.status_code == 400
        assert len(resp.get_json()["errors"]) == 3

    def test_register_duplicate(self, client, seed_data):
        resp = client.post("/auth/register", json={
            "email": "owner@test.com", "password": "longenough", "full_name": "Again",
        })
        assert resp.status_code == 409

    def test_bad_credentials(self, client, seed_data):
        resp = client.post("/auth/login", json={"email": "owner@test.com", "password": "wrong"})
        assert resp.status_code == 401

    def test_api_requires_login(self, client):
        resp = client.get("/api/workspaces")
        assert resp.status_code == 401
        assert "error" in resp.get_json()

    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok"}


class TestBoardFlow:

    def test_workspace_board_card_lifecycle(self, client, make_user, login, db_session):
        make_user("founder@test.com")
        db_session.commit()
        login("founder@test.com")

        resp = client.post("/api/workspaces", json={"name": "Launch Team"})
        assert resp.status_code == 201
        workspace = resp.get_json()["workspace"]
        assert workspace["role"] == "owner"

        resp = client.post(
            f"/api/workspaces/{workspace['id']}/boards", json={"name": "Roadmap", "key_slug": "RM"}
        )
        assert resp.status_code == 201
        board = resp.get_json()["board"]
        todo, doing = board["lists"][0]["id"], board["lists"][1]["id"]

        resp = client.post(
            f"/api/boards/{board['id']}/cards", json={"list_id": todo, "title": "Draft plan"}
        )
        assert resp.status_code == 201
        card = resp.get_json()["card"]
        assert card["key"] == "RM-1"

        resp = client.post(f"/api/cards/{card['id']}/move", json={"to_list_id": doing, "to_index": 5})
        assert resp.get_json()["card"]["list_id"] == doing
        assert resp.get_json()["card"]["order_idx"] == 0

        resp = client.post(f"/api/cards/{card['id']}/trash")
        assert resp.status_code == 200
        assert client.get(f"/api/cards/{card['id']}").status_code == 404

        trash = client.get(f"/api/boards/{board['id']}/trash").get_json()["cards"]
        assert [(c["id"], c["days_left"]) for c in trash] == [(card["id"], 15)]

        resp = client.post(f"/api/cards/{card['id']}/restore")
        assert resp.get_json()["card"]["archived_at"] is None

        actions = {log.action for log in db_session.query(ActivityLog)}
        assert {"workspace.created", "board.created", "card.created", "card.moved"} <= actions

    def test_errors_are_json(self, client, seed_data, login):
        login("member@test.com")

        resp = client.post(
            f"/api/boards/{seed_data['board_id']}/cards",
            json={"list_id": seed_data["todo_id"], "title": "Nope"},
        )
        assert resp.status_code == 403
        assert "error" in resp.get_json()

        assert client.get("/api/cards/missing").status_code == 404

        resp = client.post(f"/api/boards/{seed_data['board_id']}/lists", json={"name": "DONE"})
        assert resp.status_code == 409

    def test_delete_list_with_cards(self, client, seed_data, login):
        login("owner@test.com")
        client.post(
            f"/api/boards/{seed_data['board_id']}/cards",
            json={"list_id": seed_data["todo_id"], "title": "Keep me"},
        )

        resp = client.delete(f"/api/lists/{seed_data['todo_id']}")
        assert resp.status_code == 409
        assert resp.get_json()["count"] == 1

        resp = client.delete(
            f"/api/lists/{seed_data['todo_id']}?move_to_list_id={seed_data['done_id']}"
        )
        assert resp.get_json() == {"success": True, "moved_cards": 1}

    def test_reorder_lists(self, client, seed_data, login):
        login("admin@test.com")
        resp = client.put(f"/api/boards/{seed_data['board_id']}/lists/order", json={"orders": [
            {"id": seed_data["doing_id"], "order_idx": 0},
            {"id": seed_data["todo_id"], "order_idx": 0},
        ]})
        assert resp.status_code == 400

    def test_malformed_ids_are_bad_requests(self, client, seed_data, login):
        login("owner@test.com")
        board_id = seed_data["board_id"]

        resp = client.put(f"/api/boards/{board_id}/lists/order", json={"orders": [
            {"id": {"nested": True}, "order_idx": 0},
        ]})
        assert resp.status_code == 400

        resp = client.post(f"/api/boards/{board_id}/cards", json={
            "list_id": seed_data["todo_id"], "title": "Typed", "assignee_ids": 5,
        })
        assert resp.status_code == 400

        resp = client.post(f"/api/boards/{board_id}/cards", json={
            "list_id": seed_data["todo_id"], "title": "Typed", "label_ids": [1, 2],
        })
        assert resp.status_code == 400

        card_id = client.post(f"/api/boards/{board_id}/cards", json={
            "list_id": seed_data["todo_id"], "title": "Typed",
        }).get_json()["card"]["id"]
        resp = client.post(f"/api/cards/{card_id}/move", json={"to_list_id": 12, "to_index": 0})
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_outsider_sees_nothing(self, client, seed_data, login):
        login("outsider@test.com")
        assert client.get(f"/api/boards/{seed_data['board_id']}").status_code == 403
        assert client.get("/api/workspaces").get_json()["workspaces"] == []


class TestInvitationFlow:

    def test_invite_accept(self, client, seed_data, login, db_session):
        login("owner@test.com")
        resp = client.post(
            f"/api/workspaces/{seed_data['workspace_id']}/invitations",
            json={"email": "outsider@test.com", "role": "member"},
        )
        assert resp.status_code == 201
        invitation_id = resp.get_json()["invitation"]["id"]

        login("outsider@test.com")
        pending = client.get("/api/invitations").get_json()["invitations"]
        assert [inv["id"] for inv in pending] == [invitation_id]

        resp = client.post(f"/api/invitations/{invitation_id}/accept")
        assert resp.status_code == 200
        assert resp.get_json()["member"]["role"] == "member"

        assert client.get(f"/api/boards/{seed_data['board_id']}").status_code == 200

        owner_notes = (
            db_session.query(Notification)
            .filter_by(receiver_id=seed_data["owner_id"], type="invitation_accepted")
            .count()
        )
        assert owner_notes == 1

    def test_answer_twice(self, client, seed_data, login):
        login("owner@test.com")
        invitation_id = client.post(
            f"/api/workspaces/{seed_data['workspace_id']}/invitations",
            json={"email": "outsider@test.com"},
        ).get_json()["invitation"]["id"]

        login("outsider@test.com")
        assert client.post(f"/api/invitations/{invitation_id}/reject").status_code == 200
        assert client.post(f"/api/invitations/{invitation_id}/accept").status_code == 409

    def test_expired_status_survives_failed_accept(self, client, seed_data, login, db_session):
        invitation = invite_service.invite_member(
            db_session, seed_data["owner_id"], seed_data["workspace_id"], "outsider@test.com"
        )
        invitation.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        invitation_id = invitation.id
        db_session.commit()

        login("outsider@test.com")
        resp = client.post(f"/api/invitations/{invitation_id}/accept")
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "This invitation has expired."

        db_session.rollback()
        assert db_session.get(WorkspaceInvitation, invitation_id).status == "expired"
        assert client.post(f"/api/invitations/{invitation_id}/reject").status_code == 409


class TestEndToEnd:

    def test_invite_accept_board_card_move_scenario(self, client, seed_data, login, db_session):
        login("owner@test.com")
        workspace = client.post("/api/workspaces", json={"name": "Launchpad"}).get_json()["workspace"]
        resp = client.post(
            f"/api/workspaces/{workspace['id']}/invitations",
            json={"email": "outsider@test.com", "role": "member"},
        )
        assert resp.status_code == 201
        invitation_id = resp.get_json()["invitation"]["id"]

        login("outsider@test.com")
        resp = client.post(f"/api/invitations/{invitation_id}/accept")
        assert resp.status_code == 200
        assert resp.get_json()["member"]["role"] == "member"
        assert resp.get_json()["member"]["user_id"] == seed_data["outsider_id"]

        login("owner@test.com")
        resp = client.post(
            f"/api/workspaces/{workspace['id']}/boards", json={"name": "Project", "key_slug": "PROJ"}
        )
        assert resp.status_code == 201
        lists = resp.get_json()["board"]["lists"]
        board_id = resp.get_json()["board"]["id"]
        assert [lst["order_idx"] for lst in lists] == [0, 1, 2]
        list0, list1 = lists[0]["id"], lists[1]["id"]

        resp = client.post(f"/api/boards/{board_id}/cards", json={"list_id": list0, "title": "First"})
        assert resp.status_code == 201
        card = resp.get_json()["card"]
        assert (card["key_seq"], card["order_idx"], card["key"]) == (1, 0, "PROJ-1")

        resp = client.post(f"/api/cards/{card['id']}/move", json={"to_list_id": list1, "to_index": 0})
        assert resp.status_code == 200

        source = client.get(f"/api/lists/{list0}/cards").get_json()
        target = client.get(f"/api/lists/{list1}/cards").get_json()
        assert (source["total"], source["cards"]) == (0, [])
        assert target["total"] == 1
        assert [(c["id"], c["order_idx"]) for c in target["cards"]] == [(card["id"], 0)]


class TestNotificationsApi:

    def test_assignment_notification(self, client, seed_data, login, no_mail):
        login("owner@test.com")
        client.post(
            f"/api/boards/{seed_data['board_id']}/cards",
            json={
                "list_id": seed_data["todo_id"],
                "title": "Review copy",
                "assignee_ids": [seed_data["member_id"], seed_data["owner_id"]],
            },
        )
        assert no_mail.call_count == 1

        login("member@test.com")
        body = client.get("/api/notifications").get_json()
        assert body["unread_count"] == 1
        note = body["notifications"][0]
        assert note["type"] == "task_assigned"

        resp = client.post(f"/api/notifications/{note['id']}/read")
        assert resp.get_json()["notification"]["is_read"] is True
        assert client.get("/api/notifications/unread-count").get_json() == {"count": 0}

    def test_settings(self, client, seed_data, login):
        login("member@test.com")
        resp = client.put("/api/notifications/settings", json={"email_digest_frequency": "HOURLY"})
        assert resp.get_json()["settings"]["email_digest_frequency"] == "HOURLY"

        resp = client.put("/api/notifications/settings", json={"email_digest_frequency": "YEARLY"})
        assert resp.status_code == 400
