"""Ordered collections — positional mutation for lists and cards.

One OrderedCollection is built per scope kind:

- lists_in_board(session): BoardList rows scoped by board_id
- cards_in_list(session):  Card rows scoped by list_id

Every read-then-write locks the parent scope row first
(`SELECT ... FOR UPDATE`, a no-op on SQLite) so concurrent appends and
moves inside one scope serialize. After append / move / reorder_all the
scope's order_idx values are 0..n-1. order_idx carries no unique
constraint; readers sort by (order_idx, created_at).

Functions flush but do NOT commit — the caller commits.
"""

import logging

from sqlalchemy import func

from app.errors import (
    CrossScopeReorder,
    DuplicateOrder,
    HasChildren,
    NotFound,
    TargetScopeMismatch,
    ValidationError,
)
from app.models.board import Board, BoardList
from app.models.card import Card

logger = logging.getLogger(__name__)


class OrderedCollection:
    """Append, move, reorder and delete items that live in ordered scopes.

    Args:
        session: SQLAlchemy session every query runs on.
        model: Mapped class of the ordered items.
        scope_attr: Name of the item column holding the scope id.
        scope_model: Mapped class of the scope (parent) rows.
        group_attr: Column present on both the item and the scope row that
            must match for a cross-scope move (cards may only move to lists
            on their own board). None means items never leave their scope.
        child: Optional OrderedCollection of the items' children; required
            for delete_and_compact on a scope that holds nested items.
    """

    def __init__(self, session, model, scope_attr, scope_model,
                 group_attr=None, child=None, name="item"):
        self.session = session
        self.model = model
        self.scope_attr = scope_attr
        self.scope_model = scope_model
        self.group_attr = group_attr
        self.child = child
        self.name = name

    # ── helpers ────────────────────────────────

    @property
    def _scope_column(self):
        return getattr(self.model, self.scope_attr)

    def _lock_scope(self, scope_id):
        scope = (
            self.session.query(self.scope_model)
            .filter(self.scope_model.id == scope_id)
            .with_for_update()
            .one_or_none()
        )
        if scope is None:
            raise NotFound(f"{self.scope_model.__name__} {scope_id} not found.")
        return scope

    def _siblings(self, scope_id, exclude_id=None):
        query = self.session.query(self.model).filter(self._scope_column == scope_id)
        if exclude_id is not None:
            query = query.filter(self.model.id != exclude_id)
        return query.order_by(self.model.order_idx, self.model.created_at).all()

    def _get_item(self, item_id):
        item = self.session.get(self.model, item_id)
        if item is None:
            raise NotFound(f"{self.name.capitalize()} {item_id} not found.")
        return item

    @staticmethod
    def _renumber(items):
        for idx, item in enumerate(items):
            if item.order_idx != idx:
                item.order_idx = idx

    def items(self, scope_id):
        """All items of a scope in display order."""
        return self._siblings(scope_id)

    # ── operations ─────────────────────────────

    def append(self, scope_id, lock=True):
        """Return the next free index at the end of the scope (0 when empty)."""
        if lock:
            self._lock_scope(scope_id)
        max_idx = (
            self.session.query(func.max(self.model.order_idx))
            .filter(self._scope_column == scope_id)
            .scalar()
        )
        return 0 if max_idx is None else max_idx + 1

    def move(self, item_id, target_scope_id, target_index):
        """Place an item at `target_index` of `target_scope_id`.

        Every other item of the target scope with order_idx >= target_index
        is shifted up by one and the item takes order_idx = target_index.
        Both scopes are then renumbered 0..n-1 in that resulting order, so
        an index past the end lands the item last.

        Raises:
            ValidationError: negative or non-integer index.
            NotFound: item or target scope missing.
            TargetScopeMismatch: target is not sibling-compatible.
        """
        if isinstance(target_index, bool) or not isinstance(target_index, int) or target_index < 0:
            raise ValidationError("Target index must be a non-negative integer.")

        item = self._get_item(item_id)
        source_scope_id = getattr(item, self.scope_attr)

        # Lock in a stable order so two opposite moves cannot deadlock.
        locked = {}
        for scope_id in sorted({source_scope_id, target_scope_id}):
            locked[scope_id] = self._lock_scope(scope_id)
        target_scope = locked[target_scope_id]

        if target_scope_id != source_scope_id:
            if self.group_attr is None:
                raise TargetScopeMismatch(
                    f"A {self.name} cannot leave its {self.scope_model.__name__}."
                )
            if getattr(target_scope, self.group_attr) != getattr(item, self.group_attr):
                raise TargetScopeMismatch(
                    f"Target {self.scope_model.__name__} belongs to a different parent."
                )

        siblings = self._siblings(target_scope_id, exclude_id=item.id)
        for sibling in siblings:
            if sibling.order_idx >= target_index:
                sibling.order_idx += 1
        setattr(item, self.scope_attr, target_scope_id)
        item.order_idx = target_index

        # Stable sort: siblings keep their relative order among themselves.
        ordered = sorted(siblings + [item], key=lambda row: row.order_idx)
        position = ordered.index(item)
        self._renumber(ordered)

        if source_scope_id != target_scope_id:
            self._renumber(self._siblings(source_scope_id, exclude_id=item.id))

        self.session.flush()
        logger.debug(
            "Moved %s %s to %s[%d]", self.name, item.id, target_scope_id, position
        )
        return item

    def reorder_all(self, scope_id, orders):
        """Rewrite a scope's order from (id, requested_index) pairs.

        Items are sorted by requested index and renumbered 0..n-1. Items of
        the scope not named in `orders` keep their relative order after the
        named ones.

        Returns:
            The scope's items in their new order.
        """
        if not orders:
            raise ValidationError("Order list must not be empty.")
        pairs = []
        for entry in orders:
            item_id, requested = entry
            if isinstance(requested, bool) or not isinstance(requested, int) or requested < 0:
                raise ValidationError("Order indices must be non-negative integers.")
            pairs.append((item_id, requested))

        ids = [item_id for item_id, _ in pairs]
        if len(set(ids)) != len(ids):
            raise ValidationError("Each id may appear only once.")

        self._lock_scope(scope_id)
        current = self._siblings(scope_id)
        by_id = {item.id: item for item in current}

        foreign = [item_id for item_id in ids if item_id not in by_id]
        if foreign:
            raise CrossScopeReorder(ids=foreign)

        requested = [idx for _, idx in pairs]
        if len(set(requested)) != len(requested):
            raise DuplicateOrder()

        named = [by_id[item_id] for item_id, _ in sorted(pairs, key=lambda p: p[1])]
        named_ids = set(ids)
        rest = [item for item in current if item.id not in named_ids]
        ordered = named + rest

        self._renumber(ordered)
        self.session.flush()
        return ordered

    def delete_and_compact(self, item_id, scope_id, move_children_to=None):
        """Delete an item, optionally moving its children elsewhere first.

        Raises:
            HasChildren: children exist and no target was given.
            TargetScopeMismatch: target is the item itself or lives in a
                different scope.
            NotFound: item or target missing.
        """
        item = self._get_item(item_id)
        if getattr(item, self.scope_attr) != scope_id:
            raise NotFound(f"{self.name.capitalize()} {item_id} not found.")

        self._lock_scope(scope_id)
        children = self.child.items(item.id) if self.child else []

        if children:
            if move_children_to is None:
                raise HasChildren(
                    len(children),
                    f"This {self.name} still holds {len(children)} item(s). "
                    "Choose where to move them first.",
                )
            if move_children_to == item.id:
                raise TargetScopeMismatch("Cannot move items into the item being deleted.")
            target = self.session.get(self.model, move_children_to)
            if target is None:
                raise NotFound(f"{self.name.capitalize()} {move_children_to} not found.")
            if getattr(target, self.scope_attr) != scope_id:
                raise TargetScopeMismatch(
                    f"Target {self.name} belongs to a different {self.scope_model.__name__}."
                )

            start = self.child.append(target.id)
            for offset, child in enumerate(children):
                setattr(child, self.child.scope_attr, target.id)
                child.order_idx = start + offset
            self.session.flush()

        self.session.delete(item)
        self.session.flush()
        return len(children)


def cards_in_list(session):
    return OrderedCollection(
        session, Card, "list_id", BoardList, group_attr="board_id", name="card"
    )


def lists_in_board(session):
    return OrderedCollection(
        session,
        BoardList,
        "board_id",
        Board,
        child=cards_in_list(session),
        name="list",
    )
