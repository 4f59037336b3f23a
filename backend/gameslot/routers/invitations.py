import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError, NotFoundError, SlotFullyBookedError, UserAlreadyBookedError
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyGameRepository,
    SqlAlchemyInvitationRepository,
    SqlAlchemySlotRepository,
)
from ..models import Booking
from ..schemas import BookingRead, InvitationCreate, InvitationCreated, InvitationSummaryRead, MessageRead
from ..usecases import invitations as invitation_usecase
from ..utils.audit_log import emit_audit_log
from .errors import domain_error_to_http

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])

# Acceptance failures after which the invitation has already been deleted.
INVALIDATING_ERRORS = (SlotFullyBookedError, UserAlreadyBookedError) + invitation_usecase.INVALIDATING_BOOKING_ERRORS


def _audit(**kwargs: object) -> None:
    try:
        emit_audit_log(**kwargs)  # type: ignore[arg-type]
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc


@router.post("", response_model=InvitationCreated, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    payload: InvitationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> InvitationCreated:
    invitation_repo = SqlAlchemyInvitationRepository(session)
    slot_repo = SqlAlchemySlotRepository(session)
    try:
        async with session.begin():
            invitation = await invitation_usecase.make_invitation(
                invitation_repo,
                slot_repo,
                inviting_user_id=user_id,
                invited_user_id=payload.invited_user_id,
                slot_id=payload.slot_id,
                game_id=payload.game_id,
                tz=get_settings().tzinfo,
            )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc

    _audit(
        action="invitation.created",
        initiator="user",
        user_id=user_id,
        game_id=invitation.game_id,
        slot_id=invitation.slot_id,
        invitation_id=invitation.id,
        extra={"invited_user_id": invitation.invited_user_id},
    )
    return InvitationCreated(invitation_id=invitation.id)


@router.get("", response_model=List[InvitationSummaryRead])
async def list_pending_invitations(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[InvitationSummaryRead]:
    invitation_repo = SqlAlchemyInvitationRepository(session)
    try:
        summaries = await invitation_usecase.get_all_pending_invitations(
            invitation_repo, user_id=user_id, tz=get_settings().tzinfo
        )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [InvitationSummaryRead.from_summary(summary) for summary in summaries]


async def _accept_or_invalidate(session: AsyncSession, *, invitation_id: int, user_id: int) -> Booking | DomainError:
    """Run acceptance in the caller's transaction, returning an invalidating error instead of raising it."""
    try:
        return await invitation_usecase.accept_invitation(
            SqlAlchemyInvitationRepository(session),
            SqlAlchemySlotRepository(session),
            SqlAlchemyGameRepository(session),
            SqlAlchemyBookingRepository(session),
            invitation_id=invitation_id,
            user_id=user_id,
            tz=get_settings().tzinfo,
        )
    except INVALIDATING_ERRORS as exc:
        return exc


@router.post("/{invitation_id}/accept", response_model=BookingRead)
async def accept_invitation(
    invitation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    try:
        async with session.begin():
            outcome = await _accept_or_invalidate(session, invitation_id=invitation_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc

    if isinstance(outcome, DomainError):
        logger.info("invitation %s invalidated: %s", invitation_id, outcome.code)
        _audit(
            action="invitation.invalidated",
            initiator="user",
            user_id=user_id,
            invitation_id=invitation_id,
            message=outcome.code,
        )
        raise domain_error_to_http(outcome) from outcome

    _audit(
        action="invitation.accepted",
        initiator="user",
        user_id=user_id,
        slot_id=outcome.slot_id,
        booking_id=outcome.id,
        invitation_id=invitation_id,
    )
    return BookingRead.from_db(booking=outcome)


@router.post("/{invitation_id}/reject", response_model=MessageRead)
async def reject_invitation(
    invitation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> MessageRead:
    invitation_repo = SqlAlchemyInvitationRepository(session)
    try:
        async with session.begin():
            deleted = await invitation_usecase.reject_invitation(
                invitation_repo, invitation_id=invitation_id, user_id=user_id
            )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc

    if not deleted:
        raise domain_error_to_http(NotFoundError(f"invitation {invitation_id} not found"))

    _audit(action="invitation.rejected", initiator="user", user_id=user_id, invitation_id=invitation_id)
    return MessageRead()
