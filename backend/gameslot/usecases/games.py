from ..domain.errors import GameInUseError, NotFoundError
from ..domain.repositories import GameRepository
from ..models import Game


async def get_game(game_repo: GameRepository, *, game_id: int) -> Game:
    game = await game_repo.get(game_id)
    if game is None:
        raise NotFoundError(f"game {game_id} not found")
    return game


async def list_games(game_repo: GameRepository) -> list[Game]:
    return await game_repo.list_all()


async def create_game(
    game_repo: GameRepository,
    *,
    name: str,
    min_players: int,
    max_players: int,
    instances: int = 1,
    is_active: bool = True,
) -> Game:
    if min_players < 1:
        raise ValueError("min_players must be >= 1")
    if max_players < min_players:
        raise ValueError("max_players must be >= min_players")
    if instances < 1:
        raise ValueError("instances must be >= 1")
    return await game_repo.create(
        name=name,
        min_players=min_players,
        max_players=max_players,
        instances=instances,
        is_active=is_active,
    )


async def toggle_game_status(game_repo: GameRepository, *, game_id: int) -> Game:
    game = await get_game(game_repo, game_id=game_id)
    await game_repo.update_is_active(game.id, not game.is_active)
    game.is_active = not game.is_active
    return game


async def delete_game(game_repo: GameRepository, *, game_id: int) -> Game:
    game = await get_game(game_repo, game_id=game_id)
    # Slots keep referencing their game for as long as they exist.
    if await game_repo.has_slots(game.id):
        raise GameInUseError(f"game {game_id} still has slots")
    await game_repo.delete(game.id)
    return game
