from datetime import tzinfo

from ..domain.errors import (
    AlreadyExistsError,
    DbError,
    DomainError,
    ServiceError,
    SlotPassedError,
    UserAlreadyBookedError,
)
from ..domain.projections import BookingSummary
from ..domain.repositories import BookingRepository, GameRepository, SlotRepository
from ..domain.services import reaches_capacity
from ..models import Booking, BookingResult, Slot
from ..utils.time import venue_now
from . import games as game_usecase
from . import slots as slot_usecase


async def make_booking(
    slot_repo: SlotRepository,
    game_repo: GameRepository,
    booking_repo: BookingRepository,
    *,
    user_id: int,
    slot_id: int,
    game_id: int,
    tz: tzinfo,
) -> Booking:
    """
    Book `user_id` into a slot and close the slot once it is full.

    Checks run in a fixed order and the first failing one wins; nothing is
    written before the duplicate check passes. The slot row is locked for
    the rest of the transaction, so the duplicate check, the insert and the
    capacity count all see the same slot state.

    Raises:
        ServiceError: slot or game lookup failed (including not found), or
            counting/closing the slot failed.
        AlreadyExistsError: the slot is already fully booked.
        SlotPassedError: the slot has already started.
        UserAlreadyBookedError: the user holds a booking for this slot.
        DbError: the booking insert failed.
    """
    try:
        slot = await slot_usecase.get_slot(slot_repo, slot_id=slot_id, game_id=game_id, for_update=True)
    except DomainError as exc:
        raise ServiceError("failed to get slot details") from exc

    if slot.is_booked:
        raise AlreadyExistsError(f"slot {slot_id} is already fully booked")
    if slot.starts_at < venue_now(tz):
        raise SlotPassedError(f"slot {slot_id} has already started")

    try:
        existing = await booking_repo.get_by_user_and_slot(user_id, slot_id)
    except DbError as exc:
        raise DbError("failed to check existing booking") from exc
    if existing is not None:
        raise UserAlreadyBookedError(f"user {user_id} is already booked in slot {slot_id}")

    try:
        booking = await booking_repo.create(slot_id=slot_id, user_id=user_id)
    except DbError as exc:
        raise DbError("failed to create booking") from exc

    try:
        game = await game_usecase.get_game(game_repo, game_id=slot.game_id)
    except DomainError as exc:
        raise ServiceError("failed to get game details") from exc

    try:
        booked = await booking_repo.count_by_slot(slot_id)
    except DomainError as exc:
        raise ServiceError("failed to count slot bookings") from exc

    if reaches_capacity(booked, game.max_players):
        try:
            await slot_usecase.mark_slot_booked(slot_repo, slot_id=slot_id)
        except DomainError as exc:
            raise ServiceError("failed to update slot status") from exc

    return booking


async def get_upcoming_bookings(
    booking_repo: BookingRepository,
    *,
    user_id: int,
    tz: tzinfo,
) -> list[BookingSummary]:
    return await booking_repo.list_upcoming_by_user(user_id, venue_now(tz))


async def get_bookings_to_update_result(
    booking_repo: BookingRepository,
    *,
    user_id: int,
    tz: tzinfo,
) -> list[BookingSummary]:
    return await booking_repo.list_pending_results_by_user(user_id, venue_now(tz))


async def update_booking_result(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    result: BookingResult,
) -> None:
    await booking_repo.update_result(booking_id, result)


async def get_slot_booked_users(booking_repo: BookingRepository, *, slot_id: int) -> list[str]:
    return await booking_repo.list_slot_usernames(slot_id)


async def get_booking_by_user_and_slot(
    booking_repo: BookingRepository,
    *,
    user_id: int,
    slot_id: int,
) -> BookingSummary | None:
    return await booking_repo.get_by_user_and_slot(user_id, slot_id)


async def get_booking_for_user(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    user_id: int,
) -> tuple[Booking, Slot] | None:
    return await booking_repo.get_for_user(booking_id, user_id)
