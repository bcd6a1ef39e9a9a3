POINTS_PER_LEVEL = 100


def level_for_score(total_score: int) -> int:
    """One level per 100 cumulative points, starting at level 1."""
    return max(total_score, 0) // POINTS_PER_LEVEL + 1


def next_level(current_level: int, total_score: int) -> int:
    # Levels are never taken away, even if a repair pass lowers the total.
    return max(int(current_level or 1), level_for_score(total_score))
