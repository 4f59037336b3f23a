from datetime import tzinfo

from ..domain.errors import (
    AlreadyExistsError,
    DbError,
    DomainError,
    NotFoundError,
    SelfInviteError,
    ServiceError,
    SlotFullyBookedError,
    SlotPassedError,
    UserAlreadyBookedError,
)
from ..domain.projections import InvitationSummary
from ..domain.repositories import BookingRepository, GameRepository, InvitationRepository, SlotRepository
from ..models import Booking, Invitation
from ..utils.time import venue_now
from . import bookings as booking_usecase
from . import slots as slot_usecase

# Booking failures after which the invitation can never be accepted.
INVALIDATING_BOOKING_ERRORS = (SlotPassedError, AlreadyExistsError, UserAlreadyBookedError)


async def make_invitation(
    invitation_repo: InvitationRepository,
    slot_repo: SlotRepository,
    *,
    inviting_user_id: int,
    invited_user_id: int,
    slot_id: int,
    game_id: int,
    tz: tzinfo,
) -> Invitation:
    if inviting_user_id == invited_user_id:
        raise SelfInviteError("cannot invite yourself to a slot")

    existing = await invitation_repo.get_by_triple(inviting_user_id, invited_user_id, slot_id)
    if existing is not None:
        raise AlreadyExistsError(f"invitation already exists for slot {slot_id}")

    try:
        slot = await slot_usecase.get_slot(slot_repo, slot_id=slot_id, game_id=game_id)
    except DomainError as exc:
        raise ServiceError("failed to get slot details") from exc
    if slot.is_booked:
        raise SlotFullyBookedError(f"slot {slot_id} is already booked")
    if slot.ends_at < venue_now(tz):
        raise SlotPassedError(f"cannot invite to slot {slot_id}, it has already passed")

    return await invitation_repo.create(
        inviting_user_id=inviting_user_id,
        invited_user_id=invited_user_id,
        slot_id=slot_id,
        game_id=game_id,
    )


async def accept_invitation(
    invitation_repo: InvitationRepository,
    slot_repo: SlotRepository,
    game_repo: GameRepository,
    booking_repo: BookingRepository,
    *,
    invitation_id: int,
    user_id: int,
    tz: tzinfo,
) -> Booking:
    """
    Turn an invitation into a booking for the invited user.

    Only the invited user may accept. The invitation is deleted on success
    and on every failure that makes it permanently unusable (slot full,
    user already booked, slot passed). It is kept when the booking attempt
    fails for infrastructure reasons, so the user can retry.
    """
    try:
        invitation = await invitation_repo.get(invitation_id)
    except DbError as exc:
        raise ServiceError("failed to fetch invitation") from exc
    if invitation is None or invitation.invited_user_id != user_id:
        raise NotFoundError(f"invitation {invitation_id} not found")

    try:
        slot = await slot_usecase.get_slot(slot_repo, slot_id=invitation.slot_id, for_update=True)
    except DomainError as exc:
        raise ServiceError("failed to fetch slot") from exc

    if slot.is_booked:
        await _discard(invitation_repo, invitation_id)
        raise SlotFullyBookedError(f"slot {slot.id} is already booked")

    try:
        existing = await booking_usecase.get_booking_by_user_and_slot(
            booking_repo, user_id=invitation.invited_user_id, slot_id=invitation.slot_id
        )
    except DbError as exc:
        raise ServiceError("failed to check existing booking") from exc
    if existing is not None:
        await _discard(invitation_repo, invitation_id)
        raise UserAlreadyBookedError(f"user {user_id} already has slot {slot.id} booked")

    try:
        booking = await booking_usecase.make_booking(
            slot_repo,
            game_repo,
            booking_repo,
            user_id=invitation.invited_user_id,
            slot_id=invitation.slot_id,
            game_id=invitation.game_id,
            tz=tz,
        )
    except INVALIDATING_BOOKING_ERRORS:
        await _discard(invitation_repo, invitation_id)
        raise
    except (DbError, ServiceError) as exc:
        raise ServiceError("failed to book invitation") from exc

    await _discard(invitation_repo, invitation_id)
    return booking


async def reject_invitation(
    invitation_repo: InvitationRepository,
    *,
    invitation_id: int,
    user_id: int,
) -> bool:
    """Delete the invitation. Returns False when there was nothing to delete."""
    try:
        return await invitation_repo.delete_for_invitee(invitation_id, user_id)
    except DbError as exc:
        raise DbError("failed to reject invitation") from exc


async def get_all_pending_invitations(
    invitation_repo: InvitationRepository,
    *,
    user_id: int,
    tz: tzinfo,
) -> list[InvitationSummary]:
    return await invitation_repo.list_pending_for_user(user_id, venue_now(tz))


async def _discard(invitation_repo: InvitationRepository, invitation_id: int) -> None:
    try:
        await invitation_repo.delete(invitation_id)
    except DbError as exc:
        raise DbError("failed to delete invitation") from exc
