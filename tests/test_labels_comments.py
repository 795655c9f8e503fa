"""Tests for board labels and threaded card comments."""

import pytest

from app.errors import InsufficientRole, NotFound, ValidationError
from app.models.card import CardLabel, Comment
from app.services import board_service, card_service, comment_service, label_service


@pytest.fixture
def card(db_session, seed_data):
    return card_service.create_card(
        db_session, seed_data["owner_id"], seed_data["board_id"], seed_data["todo_id"], "Task"
    )


class TestLabels:

    def test_create_with_default_color(self, db_session, seed_data):
        label = label_service.create_label(db_session, seed_data["member_id"], seed_data["board_id"], "Bug")
        assert label.color_hex == label_service.DEFAULT_COLOR

    def test_color_validated_and_lowercased(self, db_session, seed_data):
        label = label_service.create_label(
            db_session, seed_data["owner_id"], seed_data["board_id"], "Bug", "#FF0000"
        )
        assert label.color_hex == "#ff0000"
        with pytest.raises(ValidationError):
            label_service.create_label(
                db_session, seed_data["owner_id"], seed_data["board_id"], "Bad", "red"
            )

    def test_update_label(self, db_session, seed_data):
        label = label_service.create_label(db_session, seed_data["owner_id"], seed_data["board_id"], "Bug")
        label_service.update_label(
            db_session, seed_data["owner_id"], label.id, {"name": "Defect", "color_hex": "#00ff00"}
        )
        assert (label.name, label.color_hex) == ("Defect", "#00ff00")

    def test_attach_is_idempotent(self, db_session, seed_data, card):
        label = label_service.create_label(db_session, seed_data["owner_id"], seed_data["board_id"], "Bug")
        first = label_service.add_label_to_card(db_session, seed_data["guest_id"], card.id, label.id)
        second = label_service.add_label_to_card(db_session, seed_data["guest_id"], card.id, label.id)
        assert first.id == second.id
        assert db_session.query(CardLabel).filter_by(card_id=card.id).count() == 1

    def test_label_from_other_board(self, db_session, seed_data, card):
        other = board_service.create_board(
            db_session, seed_data["owner_id"], seed_data["workspace_id"], "Other"
        )
        label = label_service.create_label(db_session, seed_data["owner_id"], other.id, "Bug")
        with pytest.raises(NotFound):
            label_service.add_label_to_card(db_session, seed_data["owner_id"], card.id, label.id)

    def test_detach_missing_is_noop(self, db_session, seed_data, card):
        label_service.remove_label_from_card(db_session, seed_data["owner_id"], card.id, "nope")

    def test_delete_label_detaches(self, db_session, seed_data, card):
        label = label_service.create_label(db_session, seed_data["owner_id"], seed_data["board_id"], "Bug")
        label_service.add_label_to_card(db_session, seed_data["owner_id"], card.id, label.id)
        label_service.delete_label(db_session, seed_data["owner_id"], label.id)
        assert db_session.query(CardLabel).count() == 0

    def test_filter_cards_by_label(self, db_session, seed_data, card):
        label = label_service.create_label(db_session, seed_data["owner_id"], seed_data["board_id"], "Bug")
        label_service.add_label_to_card(db_session, seed_data["owner_id"], card.id, label.id)
        card_service.create_card(
            db_session, seed_data["owner_id"], seed_data["board_id"], seed_data["todo_id"], "Other"
        )
        cards, total = card_service.list_cards(
            db_session, seed_data["owner_id"], seed_data["todo_id"], label_id=label.id
        )
        assert (total, cards[0].id) == (1, card.id)


class TestComments:

    def test_add_and_list(self, db_session, seed_data, card):
        comment_service.add_comment(db_session, seed_data["guest_id"], card.id, "first")
        comment_service.add_comment(db_session, seed_data["member_id"], card.id, "second")
        comments = comment_service.list_comments(db_session, seed_data["owner_id"], card.id)
        assert sorted(c.body for c in comments) == ["first", "second"]

    def test_outsider_cannot_comment(self, db_session, seed_data, card):
        from app.errors import NotMember

        with pytest.raises(NotMember):
            comment_service.add_comment(db_session, seed_data["outsider_id"], card.id, "hi")

    def test_reply_must_share_card(self, db_session, seed_data, card):
        other_card = card_service.create_card(
            db_session, seed_data["owner_id"], seed_data["board_id"], seed_data["todo_id"], "Other"
        )
        parent = comment_service.add_comment(db_session, seed_data["owner_id"], other_card.id, "x")
        with pytest.raises(ValidationError):
            comment_service.add_comment(
                db_session, seed_data["owner_id"], card.id, "reply", parent_id=parent.id
            )

    def test_only_author_edits(self, db_session, seed_data, card):
        comment = comment_service.add_comment(db_session, seed_data["member_id"], card.id, "typo")
        with pytest.raises(InsufficientRole):
            comment_service.update_comment(db_session, seed_data["owner_id"], comment.id, "fixed")
        comment_service.update_comment(db_session, seed_data["member_id"], comment.id, "fixed")
        assert comment.body == "fixed"

    def test_delete_removes_reply_tree(self, db_session, seed_data, card):
        root = comment_service.add_comment(db_session, seed_data["member_id"], card.id, "root")
        reply = comment_service.add_comment(
            db_session, seed_data["guest_id"], card.id, "reply", parent_id=root.id
        )
        comment_service.add_comment(
            db_session, seed_data["owner_id"], card.id, "nested", parent_id=reply.id
        )
        comment_service.add_comment(db_session, seed_data["owner_id"], card.id, "unrelated")

        deleted = comment_service.delete_comment(db_session, seed_data["member_id"], root.id)

        assert deleted == 3
        assert [c.body for c in db_session.query(Comment).all()] == ["unrelated"]

    def test_manager_deletes_any_comment(self, db_session, seed_data, card):
        comment = comment_service.add_comment(db_session, seed_data["member_id"], card.id, "x")
        with pytest.raises(InsufficientRole):
            comment_service.delete_comment(db_session, seed_data["guest_id"], comment.id)
        assert comment_service.delete_comment(db_session, seed_data["admin_id"], comment.id) == 1
