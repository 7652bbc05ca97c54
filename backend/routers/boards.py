# routers/boards.py — Boards and board membership
import logging
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from access import (
    visible_to, get_visible_board, get_owned_board, member_ids, load_user_summaries,
)
from auth import get_current_user, CurrentUser, UserSummary
from database import get_db_session
from errors import NotFoundError, ValidationError
from models import Board, BoardMember, BoardList, Card, User, utcnow

logger = logging.getLogger("taskboard.boards")

router = APIRouter(prefix="/boards", tags=["Boards"])


# ============================================================
# SCHEMAS
# ============================================================

def _clean_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Title must not be blank")
    return v


class BoardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return _clean_title(v)


class BoardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    members: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_title(v)


class MemberAdd(BaseModel):
    userId: Optional[str] = None
    email: Optional[EmailStr] = None


class MemberRemove(BaseModel):
    userId: str = Field(..., min_length=1)


class BoardOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    owner: UserSummary
    members: List[UserSummary] = []
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


# ============================================================
# HELPERS
# ============================================================

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


async def _board_to_out(board: Board, db: AsyncSession) -> BoardOut:
    ids = await member_ids(db, board)
    users = await load_user_summaries(db, ids)
    return BoardOut(
        id=board.id,
        title=board.title,
        description=board.description,
        owner=users[board.owner_id],
        members=[users[uid] for uid in ids if uid in users],
        createdAt=_ts(board.created_at),
        updatedAt=_ts(board.updated_at),
    )


async def _is_member(db: AsyncSession, board: Board, user_id: str) -> bool:
    if board.owner_id == user_id:
        return True
    stmt = select(BoardMember.id).where(
        BoardMember.board_id == board.id, BoardMember.user_id == user_id
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


async def _replace_members(db: AsyncSession, board: Board, user_ids: List[str]) -> None:
    wanted = [uid for uid in dict.fromkeys(user_ids) if uid != board.owner_id]
    if wanted:
        result = await db.execute(select(User.id).where(User.id.in_(wanted)))
        known = set(result.scalars().all())
        unknown = [uid for uid in wanted if uid not in known]
        if unknown:
            raise ValidationError("Unknown user ids in members", details={"members": unknown})

    await db.execute(delete(BoardMember).where(BoardMember.board_id == board.id))
    for uid in wanted:
        db.add(BoardMember(board_id=board.id, user_id=uid))


# ============================================================
# BOARD ENDPOINTS
# ============================================================

@router.get("", response_model=List[BoardOut])
async def list_boards(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List boards the caller owns or is a member of"""
    stmt = select(Board).where(visible_to(user.id)).order_by(Board.created_at.desc())
    result = await db.execute(stmt)
    return [await _board_to_out(b, db) for b in result.scalars().all()]


@router.post("", response_model=BoardOut, status_code=201)
async def create_board(
    data: BoardCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a board owned by the caller"""
    board = Board(
        title=data.title,
        description=data.description,
        owner_id=user.id,
    )
    db.add(board)
    await db.commit()
    await db.refresh(board)

    logger.info("User %s created board %s", user.id, board.id)
    return await _board_to_out(board, db)


@router.get("/{board_id}", response_model=BoardOut)
async def get_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    board = await get_visible_board(db, board_id, user.id)
    return await _board_to_out(board, db)


@router.put("/{board_id}", response_model=BoardOut)
async def update_board(
    board_id: str,
    data: BoardUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Update title, description and/or the member set (owner only)"""
    board = await get_owned_board(db, board_id, user.id)
    fields = data.model_fields_set

    if "title" in fields:
        if data.title is None:
            raise ValidationError("Title cannot be empty", details={"field": "title"})
        if data.title != board.title:
            board.title = data.title
            board.updated_at = utcnow()
    if "description" in fields and data.description != board.description:
        board.description = data.description
        board.updated_at = utcnow()
    if "members" in fields:
        if data.members is None:
            raise ValidationError("Members must be a list", details={"field": "members"})
        await _replace_members(db, board, data.members)

    await db.commit()
    await db.refresh(board)

    logger.info("User %s updated board %s (%s)", user.id, board.id, ", ".join(sorted(fields)) or "no fields")
    return await _board_to_out(board, db)


@router.delete("/{board_id}")
async def delete_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a board together with its lists, cards and memberships (owner only)"""
    board = await get_owned_board(db, board_id, user.id)

    list_ids = select(BoardList.id).where(BoardList.board_id == board.id)
    await db.execute(delete(Card).where(Card.list_id.in_(list_ids)))
    await db.execute(delete(BoardList).where(BoardList.board_id == board.id))
    await db.execute(delete(BoardMember).where(BoardMember.board_id == board.id))
    await db.delete(board)
    await db.commit()

    logger.info("User %s deleted board %s", user.id, board_id)
    return {"message": "Board deleted successfully"}


# ============================================================
# MEMBERSHIP ENDPOINTS
# ============================================================

@router.post("/{board_id}/members", response_model=BoardOut)
async def add_member(
    board_id: str,
    data: MemberAdd,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Add a member by user id or e-mail (owner only)"""
    if not data.userId and not data.email:
        raise ValidationError("userId or email is required")

    board = await get_owned_board(db, board_id, user.id)

    if data.userId:
        stmt = select(User).where(User.id == data.userId)
    else:
        stmt = select(User).where(User.email == data.email.lower())
    result = await db.execute(stmt)
    new_member = result.scalar_one_or_none()
    if not new_member:
        raise NotFoundError("User not found")

    if await _is_member(db, board, new_member.id):
        raise ValidationError("User is already a member", details={"userId": new_member.id})

    db.add(BoardMember(board_id=board.id, user_id=new_member.id))
    await db.commit()

    logger.info("User %s added member %s to board %s", user.id, new_member.id, board.id)
    return await _board_to_out(board, db)


@router.delete("/{board_id}/members", response_model=BoardOut)
async def remove_member(
    board_id: str,
    data: MemberRemove,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Remove a member (owner only; the owner can never be removed)"""
    board = await get_owned_board(db, board_id, user.id)

    if data.userId == board.owner_id:
        raise ValidationError("Cannot remove board owner")

    await db.execute(
        delete(BoardMember).where(
            BoardMember.board_id == board.id, BoardMember.user_id == data.userId
        )
    )
    await db.commit()

    logger.info("User %s removed member %s from board %s", user.id, data.userId, board.id)
    return await _board_to_out(board, db)
