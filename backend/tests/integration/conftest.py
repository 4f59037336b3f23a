from datetime import timedelta
from types import SimpleNamespace
from typing import AsyncIterator

import pytest
import pytest_asyncio
from gameslot.models import Base, Booking, BookingResult, Game, Slot, User, UserRole
from gameslot.utils.time import utc_now_naive, venue_now
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gameslot.db'}")

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN itself
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def world(session_factory: async_sessionmaker[AsyncSession], tz) -> SimpleNamespace:
    """Three users, a two-player game, one upcoming slot and one finished slot booked by alice."""
    now = utc_now_naive()
    venue = venue_now(tz)
    async with session_factory() as session:
        async with session.begin():
            users = {
                name: User(
                    username=name,
                    email=f"{name}@example.com",
                    password_hash="x",
                    role=UserRole.ADMIN if name == "admin" else UserRole.USER,
                    created_at=now,
                    updated_at=now,
                )
                for name in ("alice", "bob", "admin")
            }
            game = Game(
                name="foosball",
                min_players=1,
                max_players=2,
                instances=1,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            session.add_all([*users.values(), game])
            await session.flush()

            upcoming_start = venue + timedelta(hours=1)
            finished_start = venue - timedelta(hours=2)
            upcoming = Slot(
                game_id=game.id,
                slot_date=upcoming_start.date(),
                starts_at=upcoming_start,
                ends_at=upcoming_start + timedelta(minutes=20),
                is_booked=False,
                created_at=now,
            )
            finished = Slot(
                game_id=game.id,
                slot_date=finished_start.date(),
                starts_at=finished_start,
                ends_at=finished_start + timedelta(minutes=20),
                is_booked=False,
                created_at=now,
            )
            session.add_all([upcoming, finished])
            await session.flush()

            played = Booking(
                slot_id=finished.id,
                user_id=users["alice"].id,
                result=BookingResult.PENDING,
                created_at=now,
            )
            session.add(played)
            await session.flush()

    return SimpleNamespace(
        alice=users["alice"].id,
        bob=users["bob"].id,
        admin=users["admin"].id,
        game_id=game.id,
        upcoming_slot=upcoming.id,
        finished_slot=finished.id,
        played_booking=played.id,
    )
