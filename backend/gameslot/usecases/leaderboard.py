from ..domain.errors import AlreadyExistsError, NotFoundError
from ..domain.projections import LeaderboardRow
from ..domain.repositories import BookingRepository, LeaderboardRepository
from ..domain.services import compute_score
from ..models import BookingResult, LeaderboardEntry
from ..utils.time import utc_now_naive
from . import bookings as booking_usecase


async def record_result(
    leaderboard_repo: LeaderboardRepository,
    booking_repo: BookingRepository,
    *,
    user_id: int,
    booking_id: int,
    result: BookingResult,
    game_id: int | None = None,
) -> LeaderboardEntry:
    """Apply a win or loss to the user's standing and settle the booking."""
    if result == BookingResult.PENDING:
        raise ValueError("result must be win or loss")

    row = await booking_usecase.get_booking_for_user(booking_repo, booking_id=booking_id, user_id=user_id)
    if row is None:
        raise NotFoundError(f"booking {booking_id} not found")
    booking, slot = row
    if game_id is not None and slot.game_id != game_id:
        raise NotFoundError(f"booking {booking_id} is not for game {game_id}")
    if booking.result != BookingResult.PENDING:
        raise AlreadyExistsError(f"result already recorded for booking {booking_id}")

    entry = await leaderboard_repo.get_stats(user_id, slot.game_id)
    if entry is None:
        entry = await leaderboard_repo.create_stats(user_id, slot.game_id)
    if result == BookingResult.WIN:
        entry.wins += 1
    else:
        entry.losses += 1
    entry.score = compute_score(entry.wins, entry.losses)
    entry.updated_at = utc_now_naive()
    saved = await leaderboard_repo.save(entry)

    await booking_usecase.update_booking_result(booking_repo, booking_id=booking_id, result=result)
    booking.result = result
    return saved


async def get_game_leaderboard(leaderboard_repo: LeaderboardRepository, *, game_id: int) -> list[LeaderboardRow]:
    return await leaderboard_repo.list_by_game(game_id)


async def get_user_stats(leaderboard_repo: LeaderboardRepository, *, user_id: int) -> list[LeaderboardEntry]:
    return await leaderboard_repo.list_by_user(user_id)
