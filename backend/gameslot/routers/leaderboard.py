from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemyLeaderboardRepository
from ..models import BookingResult
from ..schemas import LeaderboardEntryRead, LeaderboardRowRead, ResultCreate
from ..usecases import leaderboard as leaderboard_usecase
from ..utils.audit_log import emit_audit_log
from .errors import domain_error_to_http

router = APIRouter(prefix="/leaderboards", tags=["leaderboards"])


@router.get("/games/{game_id}", response_model=List[LeaderboardRowRead])
async def get_game_leaderboard(
    game_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[LeaderboardRowRead]:
    try:
        rows = await leaderboard_usecase.get_game_leaderboard(SqlAlchemyLeaderboardRepository(session), game_id=game_id)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [LeaderboardRowRead(user_name=row.username, score=row.score) for row in rows]


@router.get("/me", response_model=List[LeaderboardEntryRead])
async def get_my_stats(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[LeaderboardEntryRead]:
    try:
        entries = await leaderboard_usecase.get_user_stats(SqlAlchemyLeaderboardRepository(session), user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [LeaderboardEntryRead.from_db(entry=entry) for entry in entries]


@router.post("/results", response_model=LeaderboardEntryRead)
async def record_result(
    payload: ResultCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> LeaderboardEntryRead:
    leaderboard_repo = SqlAlchemyLeaderboardRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    result = BookingResult(payload.result)
    try:
        async with session.begin():
            entry = await leaderboard_usecase.record_result(
                leaderboard_repo,
                booking_repo,
                user_id=user_id,
                booking_id=payload.booking_id,
                result=result,
                game_id=payload.game_id,
            )
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc

    try:
        emit_audit_log(
            action="booking.result_recorded",
            initiator="user",
            user_id=user_id,
            game_id=entry.game_id,
            booking_id=payload.booking_id,
            result=result,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc
    return LeaderboardEntryRead.from_db(entry=entry)
