import math


def compute_score(wins: int, losses: int) -> float:
    """
    Ranking score for a (user, game) record.

    The win/loss ratio (wins alone while there are no losses) is weighted by
    1 + sqrt(games played), so both win rate and volume count.
    """
    if wins < 0 or losses < 0:
        raise ValueError("wins and losses must be non-negative")
    ratio = float(wins) if losses == 0 else wins / losses
    return ratio * (1 + math.sqrt(wins + losses)) / 100


def reaches_capacity(booked: int, max_players: int) -> bool:
    """True when the post-insert booking count closes the slot."""
    return booked == max_players
