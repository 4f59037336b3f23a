from __future__ import annotations

from datetime import date, datetime
from typing import Protocol

from ..models import Booking, BookingResult, Game, Invitation, LeaderboardEntry, Slot, User
from .projections import BookingSummary, InvitationSummary, LeaderboardRow


class UserRepository(Protocol):
    async def get(self, user_id: int) -> User | None: ...

    async def list_all(self) -> list[User]: ...


class GameRepository(Protocol):
    async def get(self, game_id: int) -> Game | None: ...

    async def list_all(self) -> list[Game]: ...

    async def create(
        self,
        *,
        name: str,
        min_players: int,
        max_players: int,
        instances: int,
        is_active: bool,
    ) -> Game: ...

    async def update_is_active(self, game_id: int, is_active: bool) -> None: ...

    async def has_slots(self, game_id: int) -> bool: ...

    async def delete(self, game_id: int) -> None: ...


class SlotRepository(Protocol):
    async def get(self, slot_id: int) -> Slot | None: ...

    async def get_for_update(self, slot_id: int) -> Slot | None: ...

    async def list_by_game_and_date(self, game_id: int, day: date) -> list[Slot]: ...

    async def update_is_booked(self, slot_id: int, is_booked: bool) -> None: ...

    async def create(self, *, game_id: int, starts_at: datetime, ends_at: datetime) -> Slot: ...


class BookingRepository(Protocol):
    async def create(self, *, slot_id: int, user_id: int) -> Booking: ...

    async def get_by_user_and_slot(self, user_id: int, slot_id: int) -> BookingSummary | None: ...

    async def get_for_user(self, booking_id: int, user_id: int) -> tuple[Booking, Slot] | None: ...

    async def count_by_slot(self, slot_id: int) -> int: ...

    async def list_upcoming_by_user(self, user_id: int, now: datetime) -> list[BookingSummary]: ...

    async def list_pending_results_by_user(self, user_id: int, now: datetime) -> list[BookingSummary]: ...

    async def list_slot_usernames(self, slot_id: int) -> list[str]: ...

    async def update_result(self, booking_id: int, result: BookingResult) -> None: ...


class InvitationRepository(Protocol):
    async def create(
        self,
        *,
        inviting_user_id: int,
        invited_user_id: int,
        slot_id: int,
        game_id: int,
    ) -> Invitation: ...

    async def get(self, invitation_id: int) -> Invitation | None: ...

    async def get_by_triple(self, inviting_user_id: int, invited_user_id: int, slot_id: int) -> Invitation | None: ...

    async def delete(self, invitation_id: int) -> None: ...

    async def delete_for_invitee(self, invitation_id: int, invited_user_id: int) -> bool: ...

    async def list_pending_for_user(self, user_id: int, now: datetime) -> list[InvitationSummary]: ...


class LeaderboardRepository(Protocol):
    async def get_stats(self, user_id: int, game_id: int) -> LeaderboardEntry | None: ...

    async def create_stats(self, user_id: int, game_id: int) -> LeaderboardEntry: ...

    async def save(self, entry: LeaderboardEntry) -> LeaderboardEntry: ...

    async def list_by_game(self, game_id: int) -> list[LeaderboardRow]: ...

    async def list_by_user(self, user_id: int) -> list[LeaderboardEntry]: ...
