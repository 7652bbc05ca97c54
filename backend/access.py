# access.py — Board access control
# Resolution chain: Card -> List -> Board. A board is visible to its owner and
# its members; everything else gets NotFoundError so existence never leaks.
# Owner-only operations answer AuthorizationError to members.
from typing import Dict, Iterable, List, Tuple

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from auth import UserSummary, user_summary
from errors import AuthorizationError, NotFoundError
from models import Board, BoardMember, BoardList, Card, User


def visible_to(user_id: str):
    """WHERE clause matching boards the user owns or is a member of"""
    member_of = select(BoardMember.board_id).where(BoardMember.user_id == user_id)
    return or_(Board.owner_id == user_id, Board.id.in_(member_of))


async def get_visible_board(db: AsyncSession, board_id: str, user_id: str) -> Board:
    stmt = select(Board).where(Board.id == board_id, visible_to(user_id))
    result = await db.execute(stmt)
    board = result.scalar_one_or_none()
    if not board:
        raise NotFoundError("Board not found")
    return board


async def get_owned_board(db: AsyncSession, board_id: str, user_id: str) -> Board:
    board = await get_visible_board(db, board_id, user_id)
    if board.owner_id != user_id:
        raise AuthorizationError("Only the board owner can do this")
    return board


async def get_visible_list(db: AsyncSession, list_id: str, user_id: str) -> Tuple[BoardList, Board]:
    result = await db.execute(select(BoardList).where(BoardList.id == list_id))
    lst = result.scalar_one_or_none()
    if not lst:
        raise NotFoundError("List not found")
    try:
        board = await get_visible_board(db, lst.board_id, user_id)
    except NotFoundError:
        raise NotFoundError("List not found")
    return lst, board


async def get_visible_card(db: AsyncSession, card_id: str, user_id: str) -> Tuple[Card, BoardList, Board]:
    result = await db.execute(select(Card).where(Card.id == card_id))
    card = result.scalar_one_or_none()
    if not card:
        raise NotFoundError("Card not found")
    try:
        lst, board = await get_visible_list(db, card.list_id, user_id)
    except NotFoundError:
        raise NotFoundError("Card not found")
    return card, lst, board


async def member_ids(db: AsyncSession, board: Board) -> List[str]:
    """Owner first, then members in the order they joined"""
    stmt = (
        select(BoardMember.user_id)
        .where(BoardMember.board_id == board.id)
        .order_by(BoardMember.created_at.asc())
    )
    result = await db.execute(stmt)
    ids = [board.owner_id]
    ids.extend(uid for uid in result.scalars().all() if uid != board.owner_id)
    return ids


async def load_user_summaries(db: AsyncSession, user_ids: Iterable[str]) -> Dict[str, UserSummary]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {u.id: user_summary(u) for u in result.scalars().all()}
