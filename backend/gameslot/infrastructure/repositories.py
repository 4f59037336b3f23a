from __future__ import annotations

import functools
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Iterable, Optional, Tuple, TypeVar, cast

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ..domain.errors import AlreadyExistsError, DbError, UserAlreadyBookedError
from ..domain.projections import BookingSummary, InvitationSummary, LeaderboardRow
from ..domain.repositories import (
    BookingRepository,
    GameRepository,
    InvitationRepository,
    LeaderboardRepository,
    SlotRepository,
    UserRepository,
)
from ..models import Booking, BookingResult, Game, Invitation, LeaderboardEntry, Slot, User
from ..utils.time import utc_now_naive

T = TypeVar("T")


def db_errors(operation: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Re-raise SQLAlchemy failures of a repository call as DbError."""

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await fn(*args, **kwargs)
            except SQLAlchemyError as exc:
                raise DbError(f"failed to {operation}") from exc

        return wrapper

    return decorator


async def _usernames_by_slot(session: AsyncSession, slot_ids: Iterable[int]) -> dict[int, list[str]]:
    ids = sorted(set(slot_ids))
    if not ids:
        return {}
    stmt = (
        select(Booking.slot_id, User.username)
        .join(User, Booking.user_id == User.id)
        .where(Booking.slot_id.in_(ids))
        .order_by(Booking.slot_id, Booking.created_at, Booking.id)
    )
    grouped: dict[int, list[str]] = defaultdict(list)
    for slot_id, username in (await session.execute(stmt)).all():
        grouped[slot_id].append(username)
    return grouped


def _booking_summary_stmt() -> Select[Tuple[Any, ...]]:
    return (
        select(
            Booking.id,
            Slot.id,
            Game.id,
            Game.name,
            Slot.slot_date,
            Slot.starts_at,
            Slot.ends_at,
        )
        .join(Slot, Booking.slot_id == Slot.id)
        .join(Game, Slot.game_id == Game.id)
    )


async def _booking_summaries(session: AsyncSession, stmt: Select[Tuple[Any, ...]]) -> list[BookingSummary]:
    rows = (await session.execute(stmt)).all()
    users = await _usernames_by_slot(session, (row[1] for row in rows))
    return [
        BookingSummary(
            booking_id=booking_id,
            slot_id=slot_id,
            game_id=game_id,
            game_name=game_name,
            slot_date=slot_date,
            starts_at=starts_at,
            ends_at=ends_at,
            booked_users=list(users.get(slot_id, [])),
        )
        for booking_id, slot_id, game_id, game_name, slot_date, starts_at, ends_at in rows
    ]


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @db_errors("fetch user")
    async def get(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)

    @db_errors("fetch users")
    async def list_all(self) -> list[User]:
        rows = await self.session.scalars(select(User).order_by(User.username))
        return list(rows.all())


class SqlAlchemyGameRepository(GameRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @db_errors("fetch game")
    async def get(self, game_id: int) -> Game | None:
        return await self.session.get(Game, game_id)

    @db_errors("fetch games")
    async def list_all(self) -> list[Game]:
        rows = await self.session.scalars(select(Game).order_by(Game.name))
        return list(rows.all())

    @db_errors("create game")
    async def create(
        self,
        *,
        name: str,
        min_players: int,
        max_players: int,
        instances: int,
        is_active: bool,
    ) -> Game:
        now = utc_now_naive()
        game = Game(
            name=name,
            min_players=min_players,
            max_players=max_players,
            instances=instances,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        self.session.add(game)
        await self.session.flush()
        return game

    @db_errors("update game status")
    async def update_is_active(self, game_id: int, is_active: bool) -> None:
        stmt = update(Game).where(Game.id == game_id).values(is_active=is_active, updated_at=utc_now_naive())
        await self.session.execute(stmt)

    @db_errors("check game slots")
    async def has_slots(self, game_id: int) -> bool:
        return await self.session.scalar(select(Slot.id).where(Slot.game_id == game_id).limit(1)) is not None

    @db_errors("delete game")
    async def delete(self, game_id: int) -> None:
        await self.session.execute(delete(Game).where(Game.id == game_id))


class SqlAlchemySlotRepository(SlotRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @db_errors("fetch slot")
    async def get(self, slot_id: int) -> Slot | None:
        return await self.session.scalar(select(Slot).where(Slot.id == slot_id))

    @db_errors("lock slot")
    async def get_for_update(self, slot_id: int) -> Slot | None:
        # populate_existing so a slot already in the identity map is re-read under the lock
        stmt = select(Slot).where(Slot.id == slot_id).with_for_update().execution_options(populate_existing=True)
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Slot) else None

    @db_errors("fetch slots by game and date")
    async def list_by_game_and_date(self, game_id: int, day: date) -> list[Slot]:
        stmt = select(Slot).where(Slot.game_id == game_id, Slot.slot_date == day).order_by(Slot.starts_at)
        return list((await self.session.scalars(stmt)).all())

    @db_errors("update slot status")
    async def update_is_booked(self, slot_id: int, is_booked: bool) -> None:
        await self.session.execute(update(Slot).where(Slot.id == slot_id).values(is_booked=is_booked))

    @db_errors("create slot")
    async def create(self, *, game_id: int, starts_at: datetime, ends_at: datetime) -> Slot:
        slot = Slot(
            game_id=game_id,
            slot_date=starts_at.date(),
            starts_at=starts_at,
            ends_at=ends_at,
            is_booked=False,
            created_at=utc_now_naive(),
        )
        self.session.add(slot)
        await self.session.flush()
        return slot


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @db_errors("create booking")
    async def create(self, *, slot_id: int, user_id: int) -> Booking:
        booking = Booking(
            slot_id=slot_id,
            user_id=user_id,
            result=BookingResult.PENDING,
            created_at=utc_now_naive(),
        )
        try:
            async with self.session.begin_nested():
                self.session.add(booking)
                await self.session.flush()
        except IntegrityError as exc:
            duplicate = await self.session.scalar(
                select(Booking.id).where(Booking.slot_id == slot_id, Booking.user_id == user_id)
            )
            if duplicate is not None:
                raise UserAlreadyBookedError(f"user {user_id} is already booked in slot {slot_id}") from exc
            raise
        return booking

    @db_errors("fetch booking by user and slot")
    async def get_by_user_and_slot(self, user_id: int, slot_id: int) -> BookingSummary | None:
        stmt = _booking_summary_stmt().where(Booking.user_id == user_id, Booking.slot_id == slot_id)
        summaries = await _booking_summaries(self.session, stmt)
        return summaries[0] if summaries else None

    @db_errors("fetch booking")
    async def get_for_user(self, booking_id: int, user_id: int) -> Optional[Tuple[Booking, Slot]]:
        stmt: Select[Tuple[Booking, Slot]] = (
            select(Booking, Slot)
            .join(Slot, Booking.slot_id == Slot.id)
            .where(Booking.id == booking_id, Booking.user_id == user_id)
        )
        row = (await self.session.execute(stmt)).first()
        return cast(Optional[Tuple[Booking, Slot]], row)

    @db_errors("count slot bookings")
    async def count_by_slot(self, slot_id: int) -> int:
        stmt = select(func.count(Booking.id)).where(Booking.slot_id == slot_id)
        return int(await self.session.scalar(stmt) or 0)

    @db_errors("fetch upcoming bookings")
    async def list_upcoming_by_user(self, user_id: int, now: datetime) -> list[BookingSummary]:
        stmt = (
            _booking_summary_stmt()
            .where(Booking.user_id == user_id, Slot.starts_at > now)
            .order_by(Slot.starts_at)
        )
        return await _booking_summaries(self.session, stmt)

    @db_errors("fetch bookings awaiting a result")
    async def list_pending_results_by_user(self, user_id: int, now: datetime) -> list[BookingSummary]:
        stmt = (
            _booking_summary_stmt()
            .where(
                Booking.user_id == user_id,
                Booking.result == BookingResult.PENDING,
                Slot.ends_at < now,
            )
            .order_by(Slot.starts_at.desc())
        )
        return await _booking_summaries(self.session, stmt)

    @db_errors("fetch slot booked users")
    async def list_slot_usernames(self, slot_id: int) -> list[str]:
        return (await _usernames_by_slot(self.session, [slot_id])).get(slot_id, [])

    @db_errors("update booking result")
    async def update_result(self, booking_id: int, result: BookingResult) -> None:
        await self.session.execute(update(Booking).where(Booking.id == booking_id).values(result=result))


class SqlAlchemyInvitationRepository(InvitationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @db_errors("create invitation")
    async def create(
        self,
        *,
        inviting_user_id: int,
        invited_user_id: int,
        slot_id: int,
        game_id: int,
    ) -> Invitation:
        invitation = Invitation(
            inviting_user_id=inviting_user_id,
            invited_user_id=invited_user_id,
            slot_id=slot_id,
            game_id=game_id,
            created_at=utc_now_naive(),
        )
        try:
            async with self.session.begin_nested():
                self.session.add(invitation)
                await self.session.flush()
        except IntegrityError as exc:
            if await self.get_by_triple(inviting_user_id, invited_user_id, slot_id) is not None:
                raise AlreadyExistsError(f"invitation already exists for slot {slot_id}") from exc
            raise
        return invitation

    @db_errors("fetch invitation")
    async def get(self, invitation_id: int) -> Invitation | None:
        return await self.session.get(Invitation, invitation_id)

    @db_errors("fetch invitation by users and slot")
    async def get_by_triple(self, inviting_user_id: int, invited_user_id: int, slot_id: int) -> Invitation | None:
        stmt = select(Invitation).where(
            Invitation.inviting_user_id == inviting_user_id,
            Invitation.invited_user_id == invited_user_id,
            Invitation.slot_id == slot_id,
        )
        return await self.session.scalar(stmt)

    @db_errors("delete invitation")
    async def delete(self, invitation_id: int) -> None:
        await self.session.execute(delete(Invitation).where(Invitation.id == invitation_id))

    @db_errors("delete invitation")
    async def delete_for_invitee(self, invitation_id: int, invited_user_id: int) -> bool:
        result = await self.session.execute(
            delete(Invitation).where(
                Invitation.id == invitation_id,
                Invitation.invited_user_id == invited_user_id,
            )
        )
        return bool(getattr(result, "rowcount", 0))

    @db_errors("fetch pending invitations")
    async def list_pending_for_user(self, user_id: int, now: datetime) -> list[InvitationSummary]:
        inviter = aliased(User)
        stmt = (
            select(
                Invitation.id,
                Slot.id,
                Game.id,
                Game.name,
                Slot.slot_date,
                Slot.starts_at,
                Slot.ends_at,
                inviter.username,
            )
            .join(Slot, Invitation.slot_id == Slot.id)
            .join(Game, Slot.game_id == Game.id)
            .join(inviter, Invitation.inviting_user_id == inviter.id)
            .where(Invitation.invited_user_id == user_id, Slot.starts_at > now)
            .order_by(Slot.starts_at, Invitation.id)
        )
        rows = (await self.session.execute(stmt)).all()
        users = await _usernames_by_slot(self.session, (row[1] for row in rows))
        return [
            InvitationSummary(
                invitation_id=invitation_id,
                slot_id=slot_id,
                game_id=game_id,
                game_name=game_name,
                slot_date=slot_date,
                starts_at=starts_at,
                ends_at=ends_at,
                invited_by=invited_by,
                booked_users=list(users.get(slot_id, [])),
            )
            for invitation_id, slot_id, game_id, game_name, slot_date, starts_at, ends_at, invited_by in rows
        ]


class SqlAlchemyLeaderboardRepository(LeaderboardRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @db_errors("fetch user game stats")
    async def get_stats(self, user_id: int, game_id: int) -> LeaderboardEntry | None:
        stmt = (
            select(LeaderboardEntry)
            .where(LeaderboardEntry.user_id == user_id, LeaderboardEntry.game_id == game_id)
            .with_for_update()
        )
        return await self.session.scalar(stmt)

    @db_errors("create user game stats")
    async def create_stats(self, user_id: int, game_id: int) -> LeaderboardEntry:
        now = utc_now_naive()
        entry = LeaderboardEntry(
            user_id=user_id,
            game_id=game_id,
            wins=0,
            losses=0,
            score=0.0,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(entry)
                await self.session.flush()
        except IntegrityError:
            # a concurrent first result created the row; continue from it
            existing = await self.get_stats(user_id, game_id)
            if existing is None:
                raise
            return existing
        return entry

    @db_errors("save user game stats")
    async def save(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        self.session.add(entry)
        await self.session.flush()
        return entry

    @db_errors("fetch game leaderboard")
    async def list_by_game(self, game_id: int) -> list[LeaderboardRow]:
        stmt = (
            select(User.username, LeaderboardEntry.score)
            .join(User, LeaderboardEntry.user_id == User.id)
            .where(LeaderboardEntry.game_id == game_id)
            .order_by(LeaderboardEntry.score.desc(), User.username)
        )
        rows = (await self.session.execute(stmt)).all()
        return [LeaderboardRow(username=username, score=float(score)) for username, score in rows]

    @db_errors("fetch user overall stats")
    async def list_by_user(self, user_id: int) -> list[LeaderboardEntry]:
        stmt = (
            select(LeaderboardEntry)
            .where(LeaderboardEntry.user_id == user_id)
            .order_by(LeaderboardEntry.score.desc())
        )
        return list((await self.session.scalars(stmt)).all())
