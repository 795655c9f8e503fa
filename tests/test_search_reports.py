"""Tests for card / workspace / board search and workspace reports."""

from datetime import datetime, timedelta, timezone

import pytest

from app.errors import InsufficientRole, NotFound, NotMember, ValidationError
from app.services import (
    activity_service,
    board_service,
    card_service,
    label_service,
    report_service,
    search_service,
)

NOW = datetime.now(timezone.utc)


def _card(db_session, seed_data, title, list_key="todo_id", **kwargs):
    return card_service.create_card(
        db_session, seed_data["owner_id"], seed_data["board_id"], seed_data[list_key],
        title, **kwargs
    )


class TestSearchCards:

    def _search(self, db_session, seed_data, user="member_id", **filters):
        return search_service.search_cards(
            db_session, seed_data[user], seed_data["board_id"], **filters
        )

    def test_text_matches_title_or_description(self, db_session, seed_data):
        _card(db_session, seed_data, "Fix LOGIN redirect")
        _card(db_session, seed_data, "Polish footer", description="login link is broken")
        _card(db_session, seed_data, "Write docs")

        found = self._search(db_session, seed_data, q="  login ")

        assert sorted(c.title for c in found) == ["Fix LOGIN redirect", "Polish footer"]

    def test_trashed_cards_never_match(self, db_session, seed_data):
        card = _card(db_session, seed_data, "Old bug")
        card_service.trash_card(db_session, seed_data["owner_id"], card.id)
        assert self._search(db_session, seed_data, q="bug") == []

    def test_list_label_and_member_filters(self, db_session, seed_data):
        tagged = _card(db_session, seed_data, "Tagged", assignee_ids=[seed_data["member_id"]])
        _card(db_session, seed_data, "Plain")
        _card(db_session, seed_data, "Elsewhere", list_key="done_id")
        label = label_service.create_label(
            db_session, seed_data["owner_id"], seed_data["board_id"], "Bug"
        )
        label_service.add_label_to_card(db_session, seed_data["owner_id"], tagged.id, label.id)

        by_list = self._search(db_session, seed_data, list_id=seed_data["done_id"])
        by_label = self._search(db_session, seed_data, label_id=label.id)
        by_member = self._search(db_session, seed_data, member_id=seed_data["member_id"])

        assert [c.title for c in by_list] == ["Elsewhere"]
        assert [c.id for c in by_label] == [tagged.id]
        assert [c.id for c in by_member] == [tagged.id]

    def test_due_window(self, db_session, seed_data):
        _card(db_session, seed_data, "Early", due_date="2026-01-05T00:00:00Z")
        _card(db_session, seed_data, "Late", due_date="2026-03-05T00:00:00Z")
        _card(db_session, seed_data, "Undated")

        found = self._search(
            db_session, seed_data,
            due_after="2026-01-01T00:00:00Z", due_before="2026-02-01T00:00:00Z",
        )
        assert [c.title for c in found] == ["Early"]

    def test_limit_is_clamped(self, db_session, seed_data):
        for i in range(3):
            _card(db_session, seed_data, f"Task {i}")
        assert len(self._search(db_session, seed_data, limit=2)) == 2
        assert len(self._search(db_session, seed_data, limit=0)) == 3

    def test_board_required(self, db_session, seed_data):
        with pytest.raises(ValidationError):
            search_service.search_cards(db_session, seed_data["member_id"], None)

    def test_bad_date(self, db_session, seed_data):
        with pytest.raises(ValidationError):
            self._search(db_session, seed_data, due_before="next week")

    def test_outsider_rejected(self, db_session, seed_data):
        with pytest.raises(NotMember):
            self._search(db_session, seed_data, user="outsider_id", q="x")

    def test_trashed_board_not_found(self, db_session, seed_data):
        board_service.trash_board(db_session, seed_data["owner_id"], seed_data["board_id"])
        with pytest.raises(NotFound):
            self._search(db_session, seed_data)


class TestSearchNames:

    def test_workspaces_limited_to_mine(self, db_session, seed_data, make_user):
        from app.services.workspace_service import create_workspace

        stranger = make_user("stranger@test.com")
        create_workspace(db_session, stranger.id, "Acme Rivals")

        found = search_service.search_workspaces(db_session, seed_data["guest_id"], "acme")
        assert [ws.name for ws in found] == ["Acme Projects"]
        assert search_service.search_workspaces(db_session, seed_data["outsider_id"], "acme") == []

    def test_blank_query_matches_nothing(self, db_session, seed_data):
        assert search_service.search_workspaces(db_session, seed_data["owner_id"], "   ") == []
        assert search_service.search_boards(db_session, seed_data["owner_id"], None) == []

    def test_boards_skip_trashed(self, db_session, seed_data):
        other = board_service.create_board(
            db_session, seed_data["owner_id"], seed_data["workspace_id"], "Website v2"
        )
        board_service.trash_board(db_session, seed_data["owner_id"], other.id)

        found = search_service.search_boards(db_session, seed_data["member_id"], "WEBSITE")
        assert [b.id for b in found] == [seed_data["board_id"]]


class TestWorkspaceReport:

    def _populate(self, db_session, seed_data):
        overdue = _card(
            db_session, seed_data, "Overdue", priority="high",
            due_date=(NOW - timedelta(days=2)).isoformat(),
            assignee_ids=[seed_data["member_id"]],
        )
        _card(db_session, seed_data, "Open")
        _card(
            db_session, seed_data, "Shipped", list_key="done_id",
            due_date=(NOW - timedelta(days=2)).isoformat(),
        )
        trashed = _card(db_session, seed_data, "Trashed")
        card_service.trash_card(db_session, seed_data["owner_id"], trashed.id)
        return overdue

    def test_summary(self, db_session, seed_data):
        self._populate(db_session, seed_data)

        report = report_service.workspace_report(
            db_session, seed_data["admin_id"], seed_data["workspace_id"], now=NOW
        )

        assert report["workspace"]["name"] == "Acme Projects"
        assert report["summary"] == {
            "total_members": 4,
            "total_boards": 1,
            "total_cards": 3,
            "completed_cards": 1,
            "overdue_cards": 1,
            "completion_rate": 33.33,
        }

    def test_breakdowns(self, db_session, seed_data):
        self._populate(db_session, seed_data)

        report = report_service.workspace_report(
            db_session, seed_data["owner_id"], seed_data["workspace_id"], now=NOW
        )

        by_list = {row["list_id"]: row["count"] for row in report["cards_by_list"]}
        assert by_list == {seed_data["todo_id"]: 2, seed_data["done_id"]: 1}
        by_priority = {row["priority"]: row["count"] for row in report["cards_by_priority"]}
        assert by_priority == {"high": 1, "medium": 2}
        assert report["cards_by_member"] == [{
            "user": {"id": seed_data["member_id"], "email": "member@test.com",
                     "full_name": "Mia Member"},
            "assigned": 1,
        }]
        assert report["top_contributors"][0]["cards_created"] == 3
        assert report["top_contributors"][0]["user"]["id"] == seed_data["owner_id"]

    def test_start_date_narrows_cards(self, db_session, seed_data):
        old = _card(db_session, seed_data, "Ancient")
        old.created_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
        _card(db_session, seed_data, "Recent")
        db_session.flush()

        report = report_service.workspace_report(
            db_session, seed_data["owner_id"], seed_data["workspace_id"],
            start_date="2025-01-01T00:00:00Z", now=NOW,
        )

        assert report["summary"]["total_cards"] == 1
        assert report["period"]["start_date"].startswith("2025-01-01")

    def test_empty_workspace_rate_is_zero(self, db_session, seed_data):
        report = report_service.workspace_report(
            db_session, seed_data["owner_id"], seed_data["workspace_id"], now=NOW
        )
        assert report["summary"]["completion_rate"] == 0

    def test_inverted_range(self, db_session, seed_data):
        with pytest.raises(ValidationError):
            report_service.workspace_report(
                db_session, seed_data["owner_id"], seed_data["workspace_id"],
                start_date="2026-02-01", end_date="2026-01-01",
            )

    def test_managers_only(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            report_service.workspace_report(
                db_session, seed_data["member_id"], seed_data["workspace_id"]
            )
        with pytest.raises(NotMember):
            report_service.workspace_report(
                db_session, seed_data["outsider_id"], seed_data["workspace_id"]
            )
        with pytest.raises(NotFound):
            report_service.workspace_report(db_session, seed_data["owner_id"], "missing")


class TestTimelineAndDashboard:

    def _log(self, db_session, user_id, action, entity_type, entity_id, when):
        entry = activity_service.record_activity(db_session, user_id, action, entity_type, entity_id)
        entry.created_at = when
        db_session.flush()
        return entry

    def test_timeline_window(self, db_session, seed_data):
        recent = self._log(
            db_session, seed_data["owner_id"], "board.updated", "board",
            seed_data["board_id"], NOW - timedelta(days=1),
        )
        self._log(
            db_session, seed_data["owner_id"], "board.created", "board",
            seed_data["board_id"], NOW - timedelta(days=40),
        )

        logs = report_service.activity_timeline(
            db_session, seed_data["admin_id"], seed_data["workspace_id"], days=30, now=NOW
        )
        assert [log.id for log in logs] == [recent.id]

    def test_timeline_managers_only(self, db_session, seed_data):
        with pytest.raises(InsufficientRole):
            report_service.activity_timeline(
                db_session, seed_data["guest_id"], seed_data["workspace_id"]
            )

    def test_dashboard(self, db_session, seed_data):
        _card(db_session, seed_data, "Late", due_date=(NOW - timedelta(days=1)).isoformat())
        _card(db_session, seed_data, "Doing", list_key="doing_id")
        _card(db_session, seed_data, "Done", list_key="done_id")
        self._log(db_session, seed_data["member_id"], "user.registered", "user",
                  seed_data["member_id"], NOW)
        mine = self._log(db_session, seed_data["member_id"], "card.moved", "card", "c1", NOW)
        self._log(db_session, seed_data["owner_id"], "card.created", "card", "c1", NOW)

        dashboard = report_service.user_dashboard(db_session, seed_data["member_id"], now=NOW)

        assert dashboard["summary"] == {
            "total_boards": 1,
            "total_cards": 3,
            "completed_cards": 1,
            "overdue_cards": 1,
            "in_progress_cards": 2,
            "total_members": 4,
            "completion_rate": 33.33,
        }
        assert [a["id"] for a in dashboard["recent_activities"]] == [mine.id]

    def test_dashboard_without_workspaces(self, db_session, seed_data):
        dashboard = report_service.user_dashboard(db_session, seed_data["outsider_id"])
        assert dashboard["summary"]["total_cards"] == 0
        assert dashboard["summary"]["total_boards"] == 0


class TestSearchReportsApi:

    def test_search_cards_endpoint(self, client, seed_data, login, db_session):
        _card(db_session, seed_data, "Searchable thing")
        db_session.commit()
        login("guest@test.com")

        resp = client.get(f"/api/search/cards?board_id={seed_data['board_id']}&q=search")
        assert resp.status_code == 200
        assert [c["title"] for c in resp.get_json()["results"]] == ["Searchable thing"]

        assert client.get("/api/search/cards?q=x").status_code == 400
        resp = client.get(f"/api/search/cards?board_id={seed_data['board_id']}&limit=abc")
        assert resp.status_code == 400

    def test_search_names_endpoints(self, client, seed_data, login):
        login("member@test.com")
        workspaces = client.get("/api/search/workspaces?q=acme").get_json()["results"]
        assert workspaces == [{"id": seed_data["workspace_id"], "name": "Acme Projects"}]

        boards = client.get("/api/search/boards?q=web").get_json()["results"]
        assert boards == [{
            "id": seed_data["board_id"], "name": "Website",
            "workspace_id": seed_data["workspace_id"],
        }]

    def test_report_endpoints(self, client, seed_data, login):
        login("member@test.com")
        url = f"/api/reports/workspaces/{seed_data['workspace_id']}"
        assert client.get(url).status_code == 403

        login("owner@test.com")
        report = client.get(url).get_json()
        assert report["summary"]["total_members"] == 4

        resp = client.get(f"{url}/timeline?days=7")
        assert resp.status_code == 200
        assert "activities" in resp.get_json()

        dashboard = client.get("/api/reports/dashboard").get_json()
        assert dashboard["summary"]["total_boards"] == 1
