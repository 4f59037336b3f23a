import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyGameRepository,
    SqlAlchemySlotRepository,
)
from ..schemas import BookingCreate, BookingRead, BookingSummaryRead
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from .errors import domain_error_to_http

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    slot_repo = SqlAlchemySlotRepository(session)
    game_repo = SqlAlchemyGameRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        async with session.begin():
            booking = await booking_usecase.make_booking(
                slot_repo,
                game_repo,
                booking_repo,
                user_id=user_id,
                slot_id=payload.slot_id,
                game_id=payload.game_id,
                tz=get_settings().tzinfo,
            )
    except DomainError as exc:
        logger.info("booking rejected: user=%s slot=%s error=%s", user_id, payload.slot_id, exc.code)
        raise domain_error_to_http(exc) from exc

    try:
        emit_audit_log(
            action="booking.created",
            initiator="user",
            user_id=user_id,
            game_id=payload.game_id,
            slot_id=booking.slot_id,
            booking_id=booking.id,
            result=booking.result,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc

    return BookingRead.from_db(booking=booking)


@router.get("", response_model=List[BookingSummaryRead])
async def list_upcoming_bookings(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[BookingSummaryRead]:
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        summaries = await booking_usecase.get_upcoming_bookings(
            booking_repo, user_id=user_id, tz=get_settings().tzinfo
        )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [BookingSummaryRead.from_summary(summary) for summary in summaries]


@router.get("/pending-results", response_model=List[BookingSummaryRead])
async def list_bookings_awaiting_result(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[BookingSummaryRead]:
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        summaries = await booking_usecase.get_bookings_to_update_result(
            booking_repo, user_id=user_id, tz=get_settings().tzinfo
        )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [BookingSummaryRead.from_summary(summary) for summary in summaries]
