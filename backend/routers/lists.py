# routers/lists.py — Ordered lists (columns) within a board
import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional, List, Dict

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from access import get_visible_board, get_visible_list
from auth import get_current_user, CurrentUser
from database import get_db_session
from errors import NotFoundError, ValidationError
from models import Board, BoardList, Card, utcnow
from positioning import Scope, lock_scopes, move_within, close_gap, reorder

logger = logging.getLogger("taskboard.lists")

router = APIRouter(prefix="/lists", tags=["Lists"])


# ============================================================
# SCHEMAS
# ============================================================

def _clean_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Title must not be blank")
    return v


class ListCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    boardId: str = Field(..., min_length=1)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return _clean_title(v)


class ListUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    position: Optional[int] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_title(v)


class ListPosition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    boardId: str
    position: int


class ListReorder(BaseModel):
    lists: List[ListPosition]


class ListOut(BaseModel):
    id: str
    title: str
    boardId: str
    position: int
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


# ============================================================
# HELPERS
# ============================================================

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def _list_to_out(lst: BoardList) -> ListOut:
    return ListOut(
        id=lst.id,
        title=lst.title,
        boardId=lst.board_id,
        position=lst.position,
        createdAt=_ts(lst.created_at),
        updatedAt=_ts(lst.updated_at),
    )


def board_scope(board_id: str) -> Scope:
    return Scope(BoardList, BoardList.board_id, board_id)


# ============================================================
# LIST ENDPOINTS
# ============================================================

@router.get("", response_model=List[ListOut])
async def list_lists(
    boardId: str = Query(..., min_length=1),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Lists of a board, sorted by position"""
    board = await get_visible_board(db, boardId, user.id)
    lists = await board_scope(board.id).items(db)
    return [_list_to_out(lst) for lst in lists]


@router.post("", response_model=ListOut, status_code=201)
async def create_list(
    data: ListCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Append a list at the end of a board"""
    board = await get_visible_board(db, data.boardId, user.id)
    await lock_scopes(db, Board, [board.id])

    position = await board_scope(board.id).next_position(db)
    lst = BoardList(board_id=board.id, title=data.title, position=position)
    db.add(lst)
    await db.commit()
    await db.refresh(lst)

    logger.info("User %s created list %s on board %s at %d", user.id, lst.id, board.id, position)
    return _list_to_out(lst)


@router.put("/reorder")
async def reorder_lists(
    data: ListReorder,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Rewrite the positions of every list of one or more boards at once"""
    ids = [item.id for item in data.lists]
    if len(set(ids)) != len(ids):
        raise ValidationError("Duplicate list ids in reorder")
    if not ids:
        return {"message": "Lists reordered successfully"}

    result = await db.execute(select(BoardList).where(BoardList.id.in_(ids)))
    found = {lst.id: lst for lst in result.scalars().all()}
    missing = [lid for lid in ids if lid not in found]
    if missing:
        raise NotFoundError("List not found", details={"lists": missing})

    for board_id in {lst.board_id for lst in found.values()}:
        try:
            await get_visible_board(db, board_id, user.id)
        except NotFoundError:
            raise NotFoundError("List not found")

    by_board: Dict[str, Dict[str, int]] = defaultdict(dict)
    for item in data.lists:
        if found[item.id].board_id != item.boardId:
            raise ValidationError(
                "List does not belong to the given board",
                details={"_id": item.id, "boardId": item.boardId},
            )
        by_board[item.boardId][item.id] = item.position

    await lock_scopes(db, Board, by_board.keys())

    now = utcnow()
    for board_id, positions in by_board.items():
        for lst in await reorder(db, board_scope(board_id), positions):
            lst.updated_at = now

    await db.commit()

    logger.info("User %s reordered lists on %d board(s)", user.id, len(by_board))
    return {"message": "Lists reordered successfully"}


@router.get("/{list_id}", response_model=ListOut)
async def get_list(
    list_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    lst, _ = await get_visible_list(db, list_id, user.id)
    return _list_to_out(lst)


@router.put("/{list_id}", response_model=ListOut)
async def update_list(
    list_id: str,
    data: ListUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Rename a list and/or move it to another position on its board"""
    lst, board = await get_visible_list(db, list_id, user.id)
    fields = data.model_fields_set
    changed = False

    if "title" in fields:
        if data.title is None:
            raise ValidationError("Title cannot be empty", details={"field": "title"})
        if data.title != lst.title:
            lst.title = data.title
            changed = True

    if "position" in fields:
        if data.position is None:
            raise ValidationError("Position cannot be null", details={"field": "position"})
        await lock_scopes(db, Board, [board.id])
        await db.refresh(lst, ["position"])
        old_position = lst.position
        if await move_within(db, board_scope(board.id), lst, data.position):
            logger.info("User %s moved list %s from %d to %d", user.id, lst.id, old_position, lst.position)
            changed = True

    if changed:
        lst.updated_at = utcnow()
    await db.commit()
    await db.refresh(lst)
    return _list_to_out(lst)


@router.delete("/{list_id}")
async def delete_list(
    list_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a list and its cards, closing the gap among the remaining lists"""
    lst, board = await get_visible_list(db, list_id, user.id)
    await lock_scopes(db, Board, [board.id])
    await db.refresh(lst, ["position"])

    position = lst.position
    await db.execute(delete(Card).where(Card.list_id == lst.id))
    await db.delete(lst)
    await db.flush()
    await close_gap(db, board_scope(board.id), position)
    await db.commit()

    logger.info("User %s deleted list %s from board %s", user.id, list_id, board.id)
    return {"message": "List deleted successfully", "deletedListId": list_id}
