from ..domain.errors import NotFoundError
from ..domain.repositories import UserRepository
from ..models import User


async def get_user(user_repo: UserRepository, *, user_id: int) -> User:
    user = await user_repo.get(user_id)
    if user is None:
        raise NotFoundError(f"user {user_id} not found")
    return user


async def list_users(user_repo: UserRepository) -> list[User]:
    """Every registered player, by username; used to pick whom to invite."""
    return await user_repo.list_all()
