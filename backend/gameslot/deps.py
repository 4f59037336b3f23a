import logging
from typing import Any, AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .models import User, UserRole
from .utils.auth import decode_access_token, extract_bearer_token

logger = logging.getLogger(__name__)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def _lookup_user_column(session: AsyncSession, column: Any, user_id: int) -> Any:
    # Ends its transaction before returning; write routes open their own with session.begin().
    try:
        async with session.begin():
            return await session.scalar(select(column).where(User.id == user_id))
    except SQLAlchemyError as exc:
        logger.exception("user lookup failed during authentication")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="user lookup failed") from exc


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> int:
    try:
        token = extract_bearer_token(authorization)
        settings = get_settings()
        user_id = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid or missing bearer token",
            headers=_UNAUTHORIZED_HEADERS,
        ) from exc

    found = await _lookup_user_column(session, User.id, user_id)
    if found is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="user not found",
            headers=_UNAUTHORIZED_HEADERS,
        )
    return user_id


async def get_current_admin_id(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> int:
    role = await _lookup_user_column(session, User.role, user_id)
    if role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin role required")
    return user_id
