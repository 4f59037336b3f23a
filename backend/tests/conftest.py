from datetime import date, datetime, timedelta
from itertools import count
from types import SimpleNamespace
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

import pytest
from gameslot.domain.errors import DbError
from gameslot.domain.projections import BookingSummary, InvitationSummary, LeaderboardRow
from gameslot.models import Booking, BookingResult, Game, Invitation, LeaderboardEntry, Slot, User, UserRole
from gameslot.utils.time import utc_now_naive, venue_now

VENUE_TZ = ZoneInfo("Asia/Kolkata")


class InMemoryStore:
    """Backing state shared by the fake repositories below."""

    def __init__(self) -> None:
        self.usernames: dict[int, str] = {}
        self.games: dict[int, Game] = {}
        self.slots: dict[int, Slot] = {}
        self.bookings: dict[int, Booking] = {}
        self.invitations: dict[int, Invitation] = {}
        self.entries: dict[Tuple[int, int], LeaderboardEntry] = {}
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self._ids = count(1)

    def hit(self, name: str) -> None:
        self.calls.append(name)
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def fail(self, name: str, exc: Exception | None = None) -> None:
        self.failures[name] = exc or DbError(f"{name} failed")

    def next_id(self) -> int:
        return next(self._ids)

    def add_user(self, username: str) -> int:
        user_id = self.next_id()
        self.usernames[user_id] = username
        return user_id

    def add_game(self, *, name: str = "foosball", min_players: int = 1, max_players: int = 2) -> Game:
        now = utc_now_naive()
        game = Game(
            id=self.next_id(),
            name=name,
            min_players=min_players,
            max_players=max_players,
            instances=1,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.games[game.id] = game
        return game

    def add_slot(
        self,
        game: Game,
        *,
        starts_in: timedelta = timedelta(hours=1),
        length: timedelta = timedelta(minutes=20),
        is_booked: bool = False,
    ) -> Slot:
        starts_at = venue_now(VENUE_TZ) + starts_in
        slot = Slot(
            id=self.next_id(),
            game_id=game.id,
            slot_date=starts_at.date(),
            starts_at=starts_at,
            ends_at=starts_at + length,
            is_booked=is_booked,
            created_at=utc_now_naive(),
        )
        self.slots[slot.id] = slot
        return slot

    def add_booking(self, *, slot: Slot, user_id: int, result: BookingResult = BookingResult.PENDING) -> Booking:
        booking = Booking(
            id=self.next_id(),
            slot_id=slot.id,
            user_id=user_id,
            result=result,
            created_at=utc_now_naive(),
        )
        self.bookings[booking.id] = booking
        return booking

    def bookings_for(self, slot_id: int) -> list[Booking]:
        return [b for b in self.bookings.values() if b.slot_id == slot_id]

    def summary(self, booking: Booking) -> BookingSummary:
        slot = self.slots[booking.slot_id]
        game = self.games[slot.game_id]
        return BookingSummary(
            booking_id=booking.id,
            slot_id=slot.id,
            game_id=game.id,
            game_name=game.name,
            slot_date=slot.slot_date,
            starts_at=slot.starts_at,
            ends_at=slot.ends_at,
            booked_users=[self.usernames.get(b.user_id, "") for b in self.bookings_for(slot.id)],
        )


class FakeUserRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def _user(self, user_id: int) -> User:
        now = utc_now_naive()
        username = self.store.usernames[user_id]
        return User(
            id=user_id,
            username=username,
            email=f"{username}@example.com",
            password_hash="x",
            role=UserRole.USER,
            created_at=now,
            updated_at=now,
        )

    async def get(self, user_id: int) -> Optional[User]:
        self.store.hit("user.get")
        if user_id not in self.store.usernames:
            return None
        return self._user(user_id)

    async def list_all(self) -> list[User]:
        self.store.hit("user.list_all")
        users = [self._user(user_id) for user_id in self.store.usernames]
        return sorted(users, key=lambda u: u.username)

class FakeGameRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get(self, game_id: int) -> Optional[Game]:
        self.store.hit("game.get")
        return self.store.games.get(game_id)

    async def list_all(self) -> list[Game]:
        self.store.hit("game.list_all")
        return sorted(self.store.games.values(), key=lambda g: g.name)

    async def create(
        self,
        *,
        name: str,
        min_players: int,
        max_players: int,
        instances: int,
        is_active: bool,
    ) -> Game:
        self.store.hit("game.create")
        game = self.store.add_game(name=name, min_players=min_players, max_players=max_players)
        game.instances = instances
        game.is_active = is_active
        return game

    async def update_is_active(self, game_id: int, is_active: bool) -> None:
        self.store.hit("game.update_is_active")
        self.store.games[game_id].is_active = is_active

    async def has_slots(self, game_id: int) -> bool:
        self.store.hit("game.has_slots")
        return any(slot.game_id == game_id for slot in self.store.slots.values())

    async def delete(self, game_id: int) -> None:
        self.store.hit("game.delete")
        self.store.games.pop(game_id, None)


class FakeSlotRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get(self, slot_id: int) -> Optional[Slot]:
        self.store.hit("slot.get")
        return self.store.slots.get(slot_id)

    async def get_for_update(self, slot_id: int) -> Optional[Slot]:
        self.store.hit("slot.get_for_update")
        return self.store.slots.get(slot_id)

    async def list_by_game_and_date(self, game_id: int, day: date) -> list[Slot]:
        self.store.hit("slot.list_by_game_and_date")
        found = [s for s in self.store.slots.values() if s.game_id == game_id and s.slot_date == day]
        return sorted(found, key=lambda s: s.starts_at)

    async def update_is_booked(self, slot_id: int, is_booked: bool) -> None:
        self.store.hit("slot.update_is_booked")
        self.store.slots[slot_id].is_booked = is_booked

    async def create(self, *, game_id: int, starts_at: datetime, ends_at: datetime) -> Slot:
        self.store.hit("slot.create")
        slot = Slot(
            id=self.store.next_id(),
            game_id=game_id,
            slot_date=starts_at.date(),
            starts_at=starts_at,
            ends_at=ends_at,
            is_booked=False,
            created_at=utc_now_naive(),
        )
        self.store.slots[slot.id] = slot
        return slot


class FakeBookingRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def create(self, *, slot_id: int, user_id: int) -> Booking:
        self.store.hit("booking.create")
        return self.store.add_booking(slot=self.store.slots[slot_id], user_id=user_id)

    async def get_by_user_and_slot(self, user_id: int, slot_id: int) -> Optional[BookingSummary]:
        self.store.hit("booking.get_by_user_and_slot")
        for booking in self.store.bookings_for(slot_id):
            if booking.user_id == user_id:
                return self.store.summary(booking)
        return None

    async def get_for_user(self, booking_id: int, user_id: int) -> Optional[Tuple[Booking, Slot]]:
        self.store.hit("booking.get_for_user")
        booking = self.store.bookings.get(booking_id)
        if booking is None or booking.user_id != user_id:
            return None
        return booking, self.store.slots[booking.slot_id]

    async def count_by_slot(self, slot_id: int) -> int:
        self.store.hit("booking.count_by_slot")
        return len(self.store.bookings_for(slot_id))

    async def list_upcoming_by_user(self, user_id: int, now: datetime) -> list[BookingSummary]:
        self.store.hit("booking.list_upcoming_by_user")
        return [
            self.store.summary(b)
            for b in self.store.bookings.values()
            if b.user_id == user_id and self.store.slots[b.slot_id].starts_at > now
        ]

    async def list_pending_results_by_user(self, user_id: int, now: datetime) -> list[BookingSummary]:
        self.store.hit("booking.list_pending_results_by_user")
        return [
            self.store.summary(b)
            for b in self.store.bookings.values()
            if b.user_id == user_id
            and b.result == BookingResult.PENDING
            and self.store.slots[b.slot_id].ends_at < now
        ]

    async def list_slot_usernames(self, slot_id: int) -> list[str]:
        self.store.hit("booking.list_slot_usernames")
        return [self.store.usernames[b.user_id] for b in self.store.bookings_for(slot_id)]

    async def update_result(self, booking_id: int, result: BookingResult) -> None:
        self.store.hit("booking.update_result")
        self.store.bookings[booking_id].result = result


class FakeInvitationRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def create(
        self,
        *,
        inviting_user_id: int,
        invited_user_id: int,
        slot_id: int,
        game_id: int,
    ) -> Invitation:
        self.store.hit("invitation.create")
        invitation = Invitation(
            id=self.store.next_id(),
            inviting_user_id=inviting_user_id,
            invited_user_id=invited_user_id,
            slot_id=slot_id,
            game_id=game_id,
            created_at=utc_now_naive(),
        )
        self.store.invitations[invitation.id] = invitation
        return invitation

    async def get(self, invitation_id: int) -> Optional[Invitation]:
        self.store.hit("invitation.get")
        return self.store.invitations.get(invitation_id)

    async def get_by_triple(self, inviting_user_id: int, invited_user_id: int, slot_id: int) -> Optional[Invitation]:
        self.store.hit("invitation.get_by_triple")
        for invitation in self.store.invitations.values():
            if (invitation.inviting_user_id, invitation.invited_user_id, invitation.slot_id) == (
                inviting_user_id,
                invited_user_id,
                slot_id,
            ):
                return invitation
        return None

    async def delete(self, invitation_id: int) -> None:
        self.store.hit("invitation.delete")
        self.store.invitations.pop(invitation_id, None)

    async def delete_for_invitee(self, invitation_id: int, invited_user_id: int) -> bool:
        self.store.hit("invitation.delete_for_invitee")
        invitation = self.store.invitations.get(invitation_id)
        if invitation is None or invitation.invited_user_id != invited_user_id:
            return False
        del self.store.invitations[invitation_id]
        return True

    async def list_pending_for_user(self, user_id: int, now: datetime) -> list[InvitationSummary]:
        self.store.hit("invitation.list_pending_for_user")
        summaries = []
        for invitation in self.store.invitations.values():
            slot = self.store.slots[invitation.slot_id]
            if invitation.invited_user_id != user_id or slot.starts_at <= now:
                continue
            summaries.append(
                InvitationSummary(
                    invitation_id=invitation.id,
                    slot_id=slot.id,
                    game_id=slot.game_id,
                    game_name=self.store.games[slot.game_id].name,
                    slot_date=slot.slot_date,
                    starts_at=slot.starts_at,
                    ends_at=slot.ends_at,
                    invited_by=self.store.usernames[invitation.inviting_user_id],
                    booked_users=[self.store.usernames[b.user_id] for b in self.store.bookings_for(slot.id)],
                )
            )
        return summaries


class FakeLeaderboardRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get_stats(self, user_id: int, game_id: int) -> Optional[LeaderboardEntry]:
        self.store.hit("leaderboard.get_stats")
        return self.store.entries.get((user_id, game_id))

    async def create_stats(self, user_id: int, game_id: int) -> LeaderboardEntry:
        self.store.hit("leaderboard.create_stats")
        existing = self.store.entries.get((user_id, game_id))
        if existing is not None:
            return existing
        now = utc_now_naive()
        entry = LeaderboardEntry(
            id=self.store.next_id(),
            user_id=user_id,
            game_id=game_id,
            wins=0,
            losses=0,
            score=0.0,
            created_at=now,
            updated_at=now,
        )
        self.store.entries[(user_id, game_id)] = entry
        return entry

    async def save(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        self.store.hit("leaderboard.save")
        if entry.id is None:
            entry.id = self.store.next_id()
        self.store.entries[(entry.user_id, entry.game_id)] = entry
        return entry

    async def list_by_game(self, game_id: int) -> list[LeaderboardRow]:
        self.store.hit("leaderboard.list_by_game")
        entries = [e for (_, g), e in self.store.entries.items() if g == game_id]
        entries.sort(key=lambda e: e.score, reverse=True)
        return [LeaderboardRow(username=self.store.usernames[e.user_id], score=e.score) for e in entries]

    async def list_by_user(self, user_id: int) -> list[LeaderboardEntry]:
        self.store.hit("leaderboard.list_by_user")
        entries = [e for (u, _), e in self.store.entries.items() if u == user_id]
        return sorted(entries, key=lambda e: e.score, reverse=True)


@pytest.fixture
def tz() -> ZoneInfo:
    return VENUE_TZ


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def repos(store: InMemoryStore) -> SimpleNamespace:
    return SimpleNamespace(
        users=FakeUserRepo(store),
        games=FakeGameRepo(store),
        slots=FakeSlotRepo(store),
        bookings=FakeBookingRepo(store),
        invitations=FakeInvitationRepo(store),
        leaderboard=FakeLeaderboardRepo(store),
    )
