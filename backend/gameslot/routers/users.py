from typing import List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyUserRepository
from ..schemas import UserProfileRead, UserRead
from ..usecases import users as user_usecase
from .errors import domain_error_to_http

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(get_current_user_id)])


@router.get("/me", response_model=UserProfileRead)
async def get_my_profile(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> UserProfileRead:
    try:
        user = await user_usecase.get_user(SqlAlchemyUserRepository(session), user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return UserProfileRead.from_db(user=user)


@router.get("", response_model=List[UserRead])
async def list_users(session: AsyncSession = Depends(get_session)) -> list[UserRead]:
    try:
        users = await user_usecase.list_users(SqlAlchemyUserRepository(session))
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return [UserRead.from_db(user=user) for user in users]


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> UserRead:
    try:
        user = await user_usecase.get_user(SqlAlchemyUserRepository(session), user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc) from exc
    return UserRead.from_db(user=user)
