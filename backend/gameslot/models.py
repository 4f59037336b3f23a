from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum

from sqlalchemy import Boolean, CheckConstraint, Enum, Float, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, String


class Base(DeclarativeBase):
    pass


# SQLite only autoincrements INTEGER primary keys.
IdType = BigInteger().with_variant(Integer, "sqlite")


class UserRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


class BookingResult(StrEnum):
    PENDING = "pending"
    WIN = "win"
    LOSS = "loss"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda members: [e.value for e in members],
        native_enum=False,
    )


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("username", name="uq_users_username"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(_str_enum(UserRole), nullable=False, default=UserRole.USER)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Game(Base):
    __tablename__ = "games"
    __table_args__ = (
        CheckConstraint("min_players >= 1", name="chk_games_min_players"),
        CheckConstraint("max_players >= min_players", name="chk_games_max_players"),
        CheckConstraint("instances >= 1", name="chk_games_instances"),
        UniqueConstraint("name", name="uq_games_name"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    min_players: Mapped[int] = mapped_column(Integer, nullable=False)
    max_players: Mapped[int] = mapped_column(Integer, nullable=False)
    instances: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    slots: Mapped[list["Slot"]] = relationship(back_populates="game")


class Slot(Base):
    """One play window for one game. Times are venue-local wall clock."""

    __tablename__ = "slots"
    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="chk_slots_time"),
        UniqueConstraint("game_id", "starts_at", name="uq_slots_game_start"),
        Index("idx_slots_game_date", "game_id", "slot_date"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False)
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    is_booked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    game: Mapped["Game"] = relationship(back_populates="slots")
    bookings: Mapped[list["Booking"]] = relationship(back_populates="slot")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("user_id", "slot_id", name="uq_bookings_user_slot"),
        Index("idx_bookings_slot", "slot_id"),
        Index("idx_bookings_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    slot_id: Mapped[int] = mapped_column(ForeignKey("slots.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    result: Mapped[BookingResult] = mapped_column(
        _str_enum(BookingResult),
        nullable=False,
        default=BookingResult.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    slot: Mapped["Slot"] = relationship(back_populates="bookings")


class Invitation(Base):
    """A pending invitation. Resolving it (accept/reject/invalidate) deletes the row."""

    __tablename__ = "invitations"
    __table_args__ = (
        UniqueConstraint("inviting_user_id", "invited_user_id", "slot_id", name="uq_invitations_triple"),
        Index("idx_invitations_invited", "invited_user_id"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    inviting_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    invited_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    slot_id: Mapped[int] = mapped_column(ForeignKey("slots.id"), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class LeaderboardEntry(Base):
    __tablename__ = "leaderboard"
    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="uq_leaderboard_user_game"),
        CheckConstraint("wins >= 0", name="chk_leaderboard_wins"),
        CheckConstraint("losses >= 0", name="chk_leaderboard_losses"),
        Index("idx_leaderboard_game_score", "game_id", "score"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
