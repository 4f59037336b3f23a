from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True)
class BookingSummary:
    booking_id: int
    slot_id: int
    game_id: int
    game_name: str
    slot_date: date
    starts_at: datetime
    ends_at: datetime
    booked_users: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class InvitationSummary:
    invitation_id: int
    slot_id: int
    game_id: int
    game_name: str
    slot_date: date
    starts_at: datetime
    ends_at: datetime
    invited_by: str
    booked_users: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LeaderboardRow:
    username: str
    score: float
