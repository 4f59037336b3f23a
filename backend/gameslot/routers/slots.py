from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemySlotRepository
from ..schemas import SlotRead
from ..usecases import slots as slot_usecase
from ..utils.time import venue_today
from .errors import domain_error_to_http

router = APIRouter(prefix="/slots", tags=["slots"], dependencies=[Depends(get_current_user_id)])


@router.get("/games/{game_id}", response_model=List[SlotRead])
async def list_slots_for_day(
    game_id: int = Path(..., ge=1),
    day: Optional[date] = Query(default=None, description="venue-local date, defaults to today"),
    session: AsyncSession = Depends(get_session),
) -> list[SlotRead]:
    slot_repo = SqlAlchemySlotRepository(session)
    try:
        slots = await slot_usecase.list_slots_for_day(
            slot_repo,
            game_id=game_id,
            day=day or venue_today(get_settings().tzinfo),
        )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [SlotRead.from_db(slot=slot) for slot in slots]


@router.get("/{slot_id}", response_model=SlotRead)
async def get_slot(
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> SlotRead:
    slot_repo = SqlAlchemySlotRepository(session)
    try:
        slot = await slot_usecase.get_slot(slot_repo, slot_id=slot_id)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return SlotRead.from_db(slot=slot)
