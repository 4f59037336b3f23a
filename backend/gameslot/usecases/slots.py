from datetime import date, datetime

from ..domain.errors import NotFoundError
from ..domain.repositories import GameRepository, SlotRepository
from ..models import Slot


async def get_slot(
    slot_repo: SlotRepository,
    *,
    slot_id: int,
    game_id: int | None = None,
    for_update: bool = False,
) -> Slot:
    """Fetch a slot, optionally locking it and checking which game owns it."""
    if for_update:
        slot = await slot_repo.get_for_update(slot_id)
    else:
        slot = await slot_repo.get(slot_id)
    if slot is None:
        raise NotFoundError(f"slot {slot_id} not found")
    if game_id is not None and slot.game_id != game_id:
        raise NotFoundError(f"slot {slot_id} does not belong to game {game_id}")
    return slot


async def list_slots_for_day(
    slot_repo: SlotRepository,
    *,
    game_id: int,
    day: date,
) -> list[Slot]:
    return await slot_repo.list_by_game_and_date(game_id, day)


async def mark_slot_booked(slot_repo: SlotRepository, *, slot_id: int) -> None:
    await slot_repo.update_is_booked(slot_id, True)


async def create_slot(
    slot_repo: SlotRepository,
    game_repo: GameRepository,
    *,
    game_id: int,
    starts_at: datetime,
    ends_at: datetime,
) -> Slot:
    if starts_at >= ends_at:
        raise ValueError("starts_at must be earlier than ends_at")
    if starts_at.date() != ends_at.date():
        raise ValueError("a slot must start and end on the same day")
    if await game_repo.get(game_id) is None:
        raise NotFoundError(f"game {game_id} not found")
    return await slot_repo.create(game_id=game_id, starts_at=starts_at, ends_at=ends_at)
