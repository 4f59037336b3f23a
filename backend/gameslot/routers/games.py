from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_admin_id, get_current_user_id, get_session
from ..domain.errors import DbError, DomainError
from ..infrastructure.repositories import SqlAlchemyGameRepository, SqlAlchemySlotRepository
from ..schemas import GameCreate, GameRead, SlotCreate, SlotRead
from ..usecases import games as game_usecase
from ..usecases import slots as slot_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import to_venue_naive
from .errors import domain_error_to_http

router = APIRouter(prefix="/games", tags=["games"], dependencies=[Depends(get_current_user_id)])


def _audit(**kwargs: object) -> None:
    try:
        emit_audit_log(**kwargs)  # type: ignore[arg-type]
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc


def _is_conflict(exc: DbError) -> bool:
    return isinstance(exc.__cause__, IntegrityError)


@router.get("", response_model=List[GameRead])
async def list_games(session: AsyncSession = Depends(get_session)) -> list[GameRead]:
    try:
        games = await game_usecase.list_games(SqlAlchemyGameRepository(session))
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [GameRead.from_db(game=game) for game in games]


@router.get("/{game_id}", response_model=GameRead)
async def get_game(
    game_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> GameRead:
    try:
        game = await game_usecase.get_game(SqlAlchemyGameRepository(session), game_id=game_id)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return GameRead.from_db(game=game)


@router.post("", response_model=GameRead, status_code=status.HTTP_201_CREATED)
async def create_game(
    payload: GameCreate,
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> GameRead:
    game_repo = SqlAlchemyGameRepository(session)
    try:
        async with session.begin():
            game = await game_usecase.create_game(
                game_repo,
                name=payload.name,
                min_players=payload.min_players,
                max_players=payload.max_players,
                instances=payload.instances,
                is_active=payload.is_active,
            )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except DbError as exc:
        if _is_conflict(exc):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="game already exists") from exc
        raise domain_error_to_http(exc) from exc

    _audit(action="game.created", initiator="admin", user_id=admin_id, game_id=game.id)
    return GameRead.from_db(game=game)


@router.put("/{game_id}/status", response_model=GameRead)
async def toggle_game_status(
    game_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> GameRead:
    game_repo = SqlAlchemyGameRepository(session)
    try:
        async with session.begin():
            game = await game_usecase.toggle_game_status(game_repo, game_id=game_id)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc

    _audit(
        action="game.status_changed",
        initiator="admin",
        user_id=admin_id,
        game_id=game.id,
        extra={"is_active": game.is_active},
    )
    return GameRead.from_db(game=game)


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(
    game_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> None:
    game_repo = SqlAlchemyGameRepository(session)
    try:
        async with session.begin():
            await game_usecase.delete_game(game_repo, game_id=game_id)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc

    _audit(action="game.deleted", initiator="admin", user_id=admin_id, game_id=game_id)


@router.post("/{game_id}/slots", response_model=SlotRead, status_code=status.HTTP_201_CREATED)
async def create_slot(
    payload: SlotCreate,
    game_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> SlotRead:
    if payload.starts_at.tzinfo is None or payload.ends_at.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="starts_at/ends_at must have timezone")
    tz = get_settings().tzinfo
    slot_repo = SqlAlchemySlotRepository(session)
    game_repo = SqlAlchemyGameRepository(session)
    try:
        async with session.begin():
            slot = await slot_usecase.create_slot(
                slot_repo,
                game_repo,
                game_id=game_id,
                starts_at=to_venue_naive(payload.starts_at, tz),
                ends_at=to_venue_naive(payload.ends_at, tz),
            )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except DbError as exc:
        if _is_conflict(exc):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="slot already exists") from exc
        raise domain_error_to_http(exc) from exc
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc

    _audit(action="slot.created", initiator="admin", user_id=admin_id, game_id=game_id, slot_id=slot.id)
    return SlotRead.from_db(slot=slot)
