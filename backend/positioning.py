# positioning.py — Dense position bookkeeping for lists and cards
"""
Keeps the ``position`` column of a scope (the lists of one board, or the cards
of one list) equal to ``{0, ..., n-1}`` across append, move, cross-scope move,
delete and bulk reorder.

Sibling shifts are issued as single UPDATE statements inside the caller's
session; nothing here commits. Callers lock the parent row(s) first with
:func:`lock_scopes` and commit once, so each operation is atomic.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from errors import ValidationError


class Scope:
    """The siblings of one parent, e.g. ``Scope(Card, Card.list_id, list_id)``"""

    def __init__(self, model, parent_column, parent_id: str):
        self.model = model
        self.parent_column = parent_column
        self.parent_id = parent_id

    def __repr__(self) -> str:
        return f"<Scope {self.model.__tablename__}:{self.parent_id}>"

    def _in_scope(self):
        return self.parent_column == self.parent_id

    async def count(self, db: AsyncSession) -> int:
        stmt = select(func.count(self.model.id)).where(self._in_scope())
        result = await db.execute(stmt)
        return result.scalar() or 0

    async def next_position(self, db: AsyncSession) -> int:
        """Position for an item appended at the end of the scope"""
        stmt = select(func.max(self.model.position)).where(self._in_scope())
        result = await db.execute(stmt)
        max_pos = result.scalar()
        return 0 if max_pos is None else max_pos + 1

    async def items(self, db: AsyncSession) -> List:
        stmt = (
            select(self.model)
            .where(self._in_scope())
            .order_by(self.model.position.asc(), self.model.created_at.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def shift(
        self,
        db: AsyncSession,
        delta: int,
        lower: int,
        upper: Optional[int] = None,
        exclude_id: Optional[str] = None,
    ) -> None:
        """Add ``delta`` to every sibling with ``lower <= position <= upper``"""
        conditions = [self._in_scope(), self.model.position >= lower]
        if upper is not None:
            conditions.append(self.model.position <= upper)
        if exclude_id is not None:
            conditions.append(self.model.id != exclude_id)
        stmt = (
            update(self.model)
            .where(*conditions)
            .values(position=self.model.position + delta)
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(stmt)


def check_index(position: int, upper: int, what: str = "position") -> None:
    if position < 0 or position > upper:
        raise ValidationError(
            f"{what} out of range",
            details={"field": what, "value": position, "min": 0, "max": upper},
        )


async def lock_scopes(db: AsyncSession, parent_model, parent_ids: Iterable[str]) -> None:
    """Row-lock the parents of the scopes about to be renumbered.

    Ids are locked in sorted order so two requests touching the same pair of
    scopes cannot deadlock. Dialects without row locks (SQLite) ignore this.
    """
    for parent_id in sorted(set(parent_ids)):
        stmt = select(parent_model.id).where(parent_model.id == parent_id).with_for_update()
        await db.execute(stmt)


async def move_within(db: AsyncSession, scope: Scope, item, new_position: int) -> bool:
    """Move ``item`` to ``new_position`` inside its own scope.

    Returns False (and touches nothing) when the item is already there.
    """
    count = await scope.count(db)
    check_index(new_position, count - 1)

    old_position = item.position
    if new_position == old_position:
        return False

    if new_position > old_position:
        await scope.shift(db, -1, old_position + 1, new_position, exclude_id=item.id)
    else:
        await scope.shift(db, +1, new_position, old_position - 1, exclude_id=item.id)
    item.position = new_position
    return True


async def move_across(db: AsyncSession, source: Scope, destination: Scope, item, index: int) -> None:
    """Move ``item`` out of ``source`` and insert it at ``index`` in ``destination``.

    The caller re-points the item's parent column at the destination.
    """
    dest_count = await destination.count(db)
    check_index(index, dest_count, what="destinationIndex")

    old_position = item.position
    await destination.shift(db, +1, index, exclude_id=item.id)
    await source.shift(db, -1, old_position + 1, exclude_id=item.id)
    item.position = index


async def close_gap(db: AsyncSession, scope: Scope, position: int) -> None:
    """Renumber the siblings after an item at ``position`` left the scope"""
    await scope.shift(db, -1, position + 1)


async def reorder(db: AsyncSession, scope: Scope, positions: Dict[str, int]) -> List:
    """Apply a complete permutation ``{item_id: position}`` to the scope.

    The mapping must name every item of the scope exactly once and its values
    must be exactly ``0..n-1``. Returns the items whose position changed.
    """
    items = await scope.items(db)
    ids = {item.id for item in items}
    if set(positions) != ids:
        raise ValidationError(
            "Reorder must include every item of the scope exactly once",
            details={
                "missing": sorted(ids - set(positions)),
                "unexpected": sorted(set(positions) - ids),
            },
        )
    if sorted(positions.values()) != list(range(len(items))):
        raise ValidationError(
            "Positions must be contiguous from 0",
            details={"positions": sorted(positions.values())},
        )

    changed = []
    for item in items:
        new_position = positions[item.id]
        if item.position != new_position:
            item.position = new_position
            changed.append(item)
    return changed
