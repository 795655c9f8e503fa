"""Comment service — threaded comments on cards.

A reply's parent must be a comment on the same card. Deleting a comment
deletes its whole reply subtree.

Functions flush but do NOT commit — the caller commits.
"""

from app.errors import InsufficientRole, NotFound, ValidationError
from app.models.card import Comment
from app.services import access_control
from app.services.card_service import load_card
from app.services.validators import require_text


def list_comments(session, user_id, card_id):
    """Comments of a card, oldest first."""
    card, _ = load_card(session, user_id, card_id)
    return (
        session.query(Comment)
        .filter_by(card_id=card.id)
        .order_by(Comment.created_at, Comment.id)
        .all()
    )


def add_comment(session, user_id, card_id, body, parent_id=None):
    body = require_text(body, "Comment")

    card, _ = load_card(session, user_id, card_id, "comment.create")
    if parent_id:
        parent = session.get(Comment, parent_id)
        if parent is None or parent.card_id != card.id:
            raise ValidationError("Parent comment must belong to the same card.")

    comment = Comment(card_id=card.id, author_id=user_id, parent_id=parent_id or None, body=body)
    session.add(comment)
    session.flush()
    return comment


def _load_comment(session, user_id, comment_id):
    comment = session.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found.")
    _, member = load_card(session, user_id, comment.card_id)
    return comment, member


def update_comment(session, user_id, comment_id, body):
    body = require_text(body, "Comment")
    comment, _ = _load_comment(session, user_id, comment_id)
    if comment.author_id != user_id:
        raise InsufficientRole("You can only edit your own comments.")
    comment.body = body
    session.flush()
    return comment


def delete_comment(session, user_id, comment_id):
    """Delete a comment and its replies. Returns the number of rows removed."""
    comment, member = _load_comment(session, user_id, comment_id)
    if comment.author_id != user_id and not access_control.has_permission(
        member, "comment.delete_any"
    ):
        raise InsufficientRole("Only the author or a workspace admin can delete this comment.")

    doomed = [comment.id]
    frontier = [comment.id]
    while frontier:
        children = [
            row.id
            for row in session.query(Comment.id).filter(Comment.parent_id.in_(frontier))
        ]
        doomed.extend(children)
        frontier = children

    # Leaves first so no row outlives its parent.
    for doomed_id in reversed(doomed):
        session.query(Comment).filter(Comment.id == doomed_id).delete()
    session.flush()
    return len(doomed)
