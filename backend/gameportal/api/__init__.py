"""HTTP blueprints and the helpers they share for reaching the stats services."""
from flask import current_app, request

from gameportal.errors import InvalidArgument
from gameportal.services.stats import LeaderboardRanker, StatsAggregator


def get_store():
    return current_app.extensions['score_store']


def get_aggregator() -> StatsAggregator:
    return StatsAggregator(get_store())


def get_ranker() -> LeaderboardRanker:
    return LeaderboardRanker(get_store(), max_limit=int(current_app.config.get('LEADERBOARD_MAX_LIMIT', 100)))


def int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidArgument(f'{name} must be an integer, got {raw!r}')
