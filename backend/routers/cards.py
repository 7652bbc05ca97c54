# routers/cards.py — Cards within lists, including moves across lists
import logging
from datetime import datetime, timezone
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from access import get_visible_list, get_visible_card, member_ids, load_user_summaries
from auth import get_current_user, CurrentUser, UserSummary
from database import get_db_session
from errors import ValidationError
from models import Board, BoardList, Card, CardPriority, utcnow
from positioning import Scope, lock_scopes, move_within, move_across, close_gap

logger = logging.getLogger("taskboard.cards")

router = APIRouter(prefix="/cards", tags=["Cards"])


# ============================================================
# SCHEMAS
# ============================================================

def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC datetime; naive values (SQLite, clients without offset) are taken as UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class CardFields(BaseModel):
    @field_validator("title", check_fields=False)
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Title must not be blank")
        return v

    @field_validator("dueDate", check_fields=False)
    @classmethod
    def normalise_due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class CardCreate(CardFields):
    title: str = Field(..., min_length=1, max_length=500)
    listId: str = Field(..., min_length=1)
    description: Optional[str] = Field(default=None, max_length=10000)
    priority: CardPriority = CardPriority.MEDIUM
    dueDate: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    assignedTo: List[str] = Field(default_factory=list)


class CardUpdate(CardFields):
    """Partial update; fields absent from the body are left unchanged"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=10000)
    listId: Optional[str] = None
    position: Optional[int] = None
    assignedTo: Optional[List[str]] = None
    dueDate: Optional[datetime] = None
    priority: Optional[CardPriority] = None
    tags: Optional[List[str]] = None


class CardMove(BaseModel):
    cardId: str
    sourceListId: str
    destinationListId: str
    destinationIndex: int


class CardOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    listId: str
    position: int
    priority: str
    dueDate: Optional[str] = None
    tags: List[str] = []
    assignedTo: List[UserSummary] = []
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


# ============================================================
# HELPERS
# ============================================================

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def _unique(values: Optional[List[str]]) -> List[str]:
    return list(dict.fromkeys(values or []))


def list_scope(list_id: str) -> Scope:
    return Scope(Card, Card.list_id, list_id)


async def _cards_to_out(cards: List[Card], db: AsyncSession) -> List[CardOut]:
    users = await load_user_summaries(db, {uid for c in cards for uid in (c.assigned_to or [])})
    return [
        CardOut(
            id=c.id,
            title=c.title,
            description=c.description,
            listId=c.list_id,
            position=c.position,
            priority=c.priority.value if isinstance(c.priority, CardPriority) else c.priority,
            dueDate=_ts(c.due_date),
            tags=c.tags or [],
            assignedTo=[users[uid] for uid in (c.assigned_to or []) if uid in users],
            createdAt=_ts(c.created_at),
            updatedAt=_ts(c.updated_at),
        )
        for c in cards
    ]


async def _card_to_out(card: Card, db: AsyncSession) -> CardOut:
    return (await _cards_to_out([card], db))[0]


async def _check_assignees(db: AsyncSession, board: Board, user_ids: List[str]) -> None:
    allowed = set(await member_ids(db, board))
    outsiders = [uid for uid in user_ids if uid not in allowed]
    if outsiders:
        raise ValidationError(
            "Assignees must be members of the board",
            details={"assignedTo": outsiders},
        )


async def _relocate(
    db: AsyncSession, card: Card, dest_list: BoardList, index: Optional[int]
) -> bool:
    """Move ``card`` to ``index`` of ``dest_list`` (end of the list when None)"""
    source_id = card.list_id
    await lock_scopes(db, BoardList, [source_id, dest_list.id])
    await db.refresh(card, ["position", "list_id"])

    if card.list_id == dest_list.id:
        if index is None:
            return False
        return await move_within(db, list_scope(dest_list.id), card, index)

    destination = list_scope(dest_list.id)
    if index is None:
        index = await destination.count(db)
    await move_across(db, list_scope(card.list_id), destination, card, index)
    card.list_id = dest_list.id
    return True


# ============================================================
# CARD ENDPOINTS
# ============================================================

@router.get("", response_model=List[CardOut])
async def list_cards(
    listId: str = Query(..., min_length=1),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Cards of a list, sorted by position"""
    lst, _ = await get_visible_list(db, listId, user.id)
    cards = await list_scope(lst.id).items(db)
    return await _cards_to_out(cards, db)


@router.post("", response_model=CardOut, status_code=201)
async def create_card(
    data: CardCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Append a card at the end of a list"""
    lst, board = await get_visible_list(db, data.listId, user.id)
    assignees = _unique(data.assignedTo)
    await _check_assignees(db, board, assignees)

    await lock_scopes(db, BoardList, [lst.id])
    position = await list_scope(lst.id).next_position(db)
    card = Card(
        list_id=lst.id,
        title=data.title,
        description=data.description,
        position=position,
        priority=data.priority,
        due_date=data.dueDate,
        tags=_unique(data.tags),
        assigned_to=assignees,
    )
    db.add(card)
    await db.commit()
    await db.refresh(card)

    logger.info("User %s created card %s in list %s at %d", user.id, card.id, lst.id, position)
    return await _card_to_out(card, db)


@router.put("/move", response_model=CardOut)
async def move_card(
    data: CardMove,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Move a card to ``destinationIndex`` of ``destinationListId``"""
    card, _, source_board = await get_visible_card(db, data.cardId, user.id)
    if card.list_id != data.sourceListId:
        raise ValidationError(
            "sourceListId does not match the card's current list",
            details={"sourceListId": data.sourceListId},
        )
    dest_list, board = await get_visible_list(db, data.destinationListId, user.id)
    if board.id != source_board.id:
        await _check_assignees(db, board, card.assigned_to or [])

    old_list, old_position = card.list_id, card.position
    if await _relocate(db, card, dest_list, data.destinationIndex):
        card.updated_at = utcnow()
        logger.info(
            "User %s moved card %s from %s[%d] to %s[%d]",
            user.id, card.id, old_list, old_position, card.list_id, card.position,
        )
    await db.commit()
    await db.refresh(card)
    return await _card_to_out(card, db)


@router.get("/{card_id}", response_model=CardOut)
async def get_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    card, _, _ = await get_visible_card(db, card_id, user.id)
    return await _card_to_out(card, db)


@router.put("/{card_id}", response_model=CardOut)
async def update_card(
    card_id: str,
    data: CardUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Update card fields and/or move it (within its list or to another list)"""
    card, _, board = await get_visible_card(db, card_id, user.id)
    fields = data.model_fields_set
    source_board_id = board.id

    for name in ("title", "priority", "listId", "position"):
        if name in fields and getattr(data, name) is None:
            raise ValidationError(f"{name} cannot be null", details={"field": name})

    changed = False
    assignees = _unique(data.assignedTo) if "assignedTo" in fields else (card.assigned_to or [])

    if "listId" in fields or "position" in fields:
        dest_list_id = data.listId if "listId" in fields else card.list_id
        dest_list, board = await get_visible_list(db, dest_list_id, user.id)
        if board.id != source_board_id and "assignedTo" not in fields:
            # Existing assignees have to follow the card onto the other board
            await _check_assignees(db, board, assignees)
        if await _relocate(db, card, dest_list, data.position if "position" in fields else None):
            changed = True

    if "assignedTo" in fields:
        await _check_assignees(db, board, assignees)
        if assignees != (card.assigned_to or []):
            card.assigned_to = assignees
            changed = True
    if "title" in fields and data.title != card.title:
        card.title = data.title
        changed = True
    if "description" in fields and data.description != card.description:
        card.description = data.description
        changed = True
    if "dueDate" in fields and data.dueDate != as_utc(card.due_date):
        card.due_date = data.dueDate
        changed = True
    if "priority" in fields and data.priority != card.priority:
        card.priority = data.priority
        changed = True
    if "tags" in fields:
        tags = _unique(data.tags)
        if tags != (card.tags or []):
            card.tags = tags
            changed = True

    if changed:
        card.updated_at = utcnow()
        logger.info("User %s updated card %s (%s)", user.id, card.id, ", ".join(sorted(fields)))
    await db.commit()
    await db.refresh(card)
    return await _card_to_out(card, db)


@router.delete("/{card_id}")
async def delete_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a card, closing the gap among the remaining cards of its list"""
    card, lst, _ = await get_visible_card(db, card_id, user.id)
    await lock_scopes(db, BoardList, [lst.id])
    await db.refresh(card, ["position"])

    position = card.position
    await db.delete(card)
    await db.flush()
    await close_gap(db, list_scope(lst.id), position)
    await db.commit()

    logger.info("User %s deleted card %s from list %s", user.id, card_id, lst.id)
    return {"message": "Card deleted successfully", "deletedCardId": card_id}
