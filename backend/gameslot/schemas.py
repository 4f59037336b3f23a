from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_serializer

from .config import get_settings
from .domain.projections import BookingSummary, InvitationSummary
from .models import Booking, BookingResult, Game, LeaderboardEntry, Slot, User, UserRole
from .utils.time import venue_naive_to_aware


def _ser_venue(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = venue_naive_to_aware(dt, get_settings().tzinfo)
    return dt.isoformat()


class UserRead(BaseModel):
    user_id: int
    username: str

    @classmethod
    def from_db(cls, *, user: User) -> "UserRead":
        return cls(user_id=user.id, username=user.username)


class UserProfileRead(UserRead):
    email: str
    role: UserRole

    @classmethod
    def from_db(cls, *, user: User) -> "UserProfileRead":
        return cls(user_id=user.id, username=user.username, email=user.email, role=user.role)


class GameCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    min_players: int = Field(ge=1)
    max_players: int = Field(ge=1)
    instances: int = Field(default=1, ge=1)
    is_active: bool = True


class GameRead(BaseModel):
    game_id: int
    name: str
    min_players: int
    max_players: int
    instances: int
    is_active: bool

    @classmethod
    def from_db(cls, *, game: Game) -> "GameRead":
        return cls(
            game_id=game.id,
            name=game.name,
            min_players=game.min_players,
            max_players=game.max_players,
            instances=game.instances,
            is_active=game.is_active,
        )


class SlotCreate(BaseModel):
    starts_at: datetime
    ends_at: datetime


class SlotRead(BaseModel):
    slot_id: int
    game_id: int
    slot_date: date
    starts_at: datetime
    ends_at: datetime
    is_booked: bool

    @field_serializer("starts_at", "ends_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return _ser_venue(dt)

    @classmethod
    def from_db(cls, *, slot: Slot) -> "SlotRead":
        return cls(
            slot_id=slot.id,
            game_id=slot.game_id,
            slot_date=slot.slot_date,
            starts_at=slot.starts_at,
            ends_at=slot.ends_at,
            is_booked=slot.is_booked,
        )


class BookingCreate(BaseModel):
    slot_id: int
    game_id: int


class BookingRead(BaseModel):
    booking_id: int
    slot_id: int
    user_id: int
    result: BookingResult

    @classmethod
    def from_db(cls, *, booking: Booking) -> "BookingRead":
        return cls(
            booking_id=booking.id,
            slot_id=booking.slot_id,
            user_id=booking.user_id,
            result=booking.result,
        )


class BookingSummaryRead(BaseModel):
    booking_id: int
    slot_id: int
    game_id: int
    game: str
    slot_date: date
    starts_at: datetime
    ends_at: datetime
    booked_users: list[str]

    @field_serializer("starts_at", "ends_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return _ser_venue(dt)

    @classmethod
    def from_summary(cls, summary: BookingSummary) -> "BookingSummaryRead":
        return cls(
            booking_id=summary.booking_id,
            slot_id=summary.slot_id,
            game_id=summary.game_id,
            game=summary.game_name,
            slot_date=summary.slot_date,
            starts_at=summary.starts_at,
            ends_at=summary.ends_at,
            booked_users=list(summary.booked_users),
        )


class InvitationCreate(BaseModel):
    invited_user_id: int
    slot_id: int
    game_id: int


class InvitationCreated(BaseModel):
    invitation_id: int


class InvitationSummaryRead(BaseModel):
    invitation_id: int
    slot_id: int
    game_id: int
    game: str
    slot_date: date
    starts_at: datetime
    ends_at: datetime
    invited_by: str
    booked_users: list[str]

    @field_serializer("starts_at", "ends_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return _ser_venue(dt)

    @classmethod
    def from_summary(cls, summary: InvitationSummary) -> "InvitationSummaryRead":
        return cls(
            invitation_id=summary.invitation_id,
            slot_id=summary.slot_id,
            game_id=summary.game_id,
            game=summary.game_name,
            slot_date=summary.slot_date,
            starts_at=summary.starts_at,
            ends_at=summary.ends_at,
            invited_by=summary.invited_by,
            booked_users=list(summary.booked_users),
        )


class ResultCreate(BaseModel):
    booking_id: int
    game_id: Optional[int] = None
    result: Literal["win", "loss"]


class LeaderboardEntryRead(BaseModel):
    game_id: int
    wins: int
    losses: int
    score: float

    @classmethod
    def from_db(cls, *, entry: LeaderboardEntry) -> "LeaderboardEntryRead":
        return cls(game_id=entry.game_id, wins=entry.wins, losses=entry.losses, score=entry.score)


class LeaderboardRowRead(BaseModel):
    user_name: str
    score: float


class MessageRead(BaseModel):
    message: str = "Success"
