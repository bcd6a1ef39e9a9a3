import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from gameportal.catalog import GAME_IDS, get_game
from gameportal.errors import InvalidArgument, InvalidScore, PlayerNotFound
from .leveling import next_level
from .records import HighScoreRecord, PlayerRecord, ScoreEventRecord
from .store import ScoreStore

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 10


@dataclass
class DerivedStats:
    games_played: int = 0
    total_score: int = 0
    total_play_time: float = 0.0
    average_score: int = 0
    high_score: int = 0
    high_scores: Dict[str, int] = field(default_factory=dict)
    best_game: Optional[str] = None


@dataclass
class PlayerStats:
    player: PlayerRecord
    total_games: int
    total_score: int
    average_score: int
    total_play_time: float
    best_game: Optional[str]
    high_scores: Dict[str, int]
    recent_scores: List[ScoreEventRecord]

    def to_dict(self):
        return {
            'player': self.player.to_dict(),
            'totalGames': self.total_games,
            'totalScore': self.total_score,
            'averageScore': self.average_score,
            'totalPlayTime': self.total_play_time,
            'bestGame': self.best_game,
            'highScores': dict(self.high_scores),
            'recentScores': [e.to_dict() for e in self.recent_scores],
        }


def average(total: int, count: int) -> int:
    """Mean rounded half up (8.5 -> 9); 0 when there is nothing to average."""
    if count <= 0:
        return 0
    return int((Decimal(total) / Decimal(count)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def derive_stats(events: Iterable[ScoreEventRecord]) -> DerivedStats:
    """Fold a player's score history into totals, per-game bests and best game."""
    stats = DerivedStats()
    per_game: Dict[str, List[int]] = {}
    for event in events:
        stats.games_played += 1
        stats.total_score += event.score
        stats.total_play_time += event.time_played
        per_game.setdefault(event.game_id, []).append(event.score)
        best = stats.high_scores.get(event.game_id)
        if best is None or event.score > best:
            stats.high_scores[event.game_id] = event.score

    stats.average_score = average(stats.total_score, stats.games_played)
    stats.high_score = max(stats.high_scores.values(), default=0)

    best_avg = None
    for game_id in GAME_IDS:
        scores = per_game.get(game_id)
        if not scores:
            continue
        avg = sum(scores) / len(scores)
        if best_avg is None or avg > best_avg:
            best_avg = avg
            stats.best_game = game_id
    return stats


def newest_first(events: List[ScoreEventRecord]) -> List[ScoreEventRecord]:
    # Input is in append order; reversing first keeps same-timestamp events newest first.
    return sorted(reversed(events), key=lambda e: e.created_at, reverse=True)


def validate_score(score, min_score: int = 0) -> int:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise InvalidScore(f'Score must be an integer, got {score!r}')
    if isinstance(score, float):
        if not math.isfinite(score) or not score.is_integer():
            raise InvalidScore(f'Score must be a finite integer, got {score!r}')
        score = int(score)
    if score < min_score:
        raise InvalidScore(f'Score {score} is below the minimum of {min_score}')
    return score


def validate_time_played(time_played) -> float:
    if time_played is None:
        return 0.0
    if isinstance(time_played, bool) or not isinstance(time_played, (int, float)):
        raise InvalidArgument(f'timePlayed must be a number, got {time_played!r}')
    if not math.isfinite(time_played) or time_played < 0:
        raise InvalidArgument(f'timePlayed must be a non-negative number, got {time_played!r}')
    return float(time_played)


def validate_limit(limit, name: str = 'limit') -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidArgument(f'{name} must be a positive integer, got {limit!r}')
    return limit


class StatsAggregator:
    """Turns recorded scores into player aggregates and per-game high scores."""

    def __init__(self, store: ScoreStore):
        self.store = store

    def _require_player(self, player_id) -> PlayerRecord:
        if player_id is not None and not isinstance(player_id, str):
            raise InvalidArgument(f'playerId must be a string, got {type(player_id).__name__}')
        player = self.store.get_player(player_id) if player_id else None
        if player is None:
            raise PlayerNotFound(player_id)
        return player

    def record_score(
        self,
        player_id: str,
        game_id: str,
        score,
        time_played=0,
        level_reached: Optional[int] = None,
        idempotency_key: Optional[str] = None,
    ) -> Tuple[ScoreEventRecord, PlayerRecord]:
        game = get_game(game_id)
        score = validate_score(score, game.min_score)
        time_played = validate_time_played(time_played)
        if level_reached is not None and (
            isinstance(level_reached, bool) or not isinstance(level_reached, int) or level_reached < 0
        ):
            raise InvalidArgument(f'levelReached must be a non-negative integer, got {level_reached!r}')
        if idempotency_key is not None and (not isinstance(idempotency_key, str) or len(idempotency_key) > 64):
            raise InvalidArgument('idempotencyKey must be a string of at most 64 characters')

        self._require_player(player_id)

        if idempotency_key:
            existing = self.store.find_score_event(player_id, idempotency_key)
            if existing is not None:
                logger.info(f"[score-replay] player={player_id} key={idempotency_key} event={existing.id}")
                return existing, self._require_player(player_id)

        event = ScoreEventRecord(
            player_id=player_id,
            game_id=game.id,
            score=score,
            time_played=time_played,
            level_reached=level_reached,
            idempotency_key=idempotency_key or None,
        )
        with self.store.record():
            # Nothing below runs if the append fails
            event = self.store.append_score_event(event)
            self._apply_high_score(event)
            player = self._refresh_player(player_id)

        logger.info(
            f"[score] player={player_id} game={game.id} score={score} "
            f"total={player.total_score} level={player.level}"
        )
        return event, player

    def _apply_high_score(self, event: ScoreEventRecord) -> None:
        current = self.store.get_high_score(event.player_id, event.game_id)
        # Strictly greater: an equal score keeps the earlier achieved_at
        if current is None or event.score > current.high_score:
            self.store.upsert_high_score(HighScoreRecord(
                player_id=event.player_id,
                game_id=event.game_id,
                high_score=event.score,
                achieved_at=event.created_at,
            ))

    def _refresh_player(self, player_id: str) -> PlayerRecord:
        player = self._require_player(player_id)
        derived = derive_stats(self.store.get_score_events(player_id))
        best = max((hs.high_score for hs in self.store.get_high_scores(player_id=player_id)), default=0)
        return self.store.update_player(
            player_id,
            games_played=derived.games_played,
            total_score=derived.total_score,
            total_play_time=derived.total_play_time,
            average_score=derived.average_score,
            high_score=best,
            level=next_level(player.level, derived.total_score),
        )

    def get_player_stats(self, player_id: str, recent_limit: int = DEFAULT_RECENT_LIMIT) -> PlayerStats:
        recent_limit = validate_limit(recent_limit, 'recent_limit')
        player = self._require_player(player_id)
        events = self.store.get_score_events(player_id)
        derived = derive_stats(events)
        return PlayerStats(
            player=player,
            total_games=derived.games_played,
            total_score=derived.total_score,
            average_score=derived.average_score,
            total_play_time=derived.total_play_time,
            best_game=derived.best_game,
            high_scores={hs.game_id: hs.high_score for hs in self.store.get_high_scores(player_id=player_id)},
            recent_scores=newest_first(events)[:recent_limit],
        )

    def get_history(self, player_id: str, game_id: Optional[str] = None) -> List[ScoreEventRecord]:
        if game_id is not None:
            game_id = get_game(game_id).id
        self._require_player(player_id)
        return newest_first(self.store.get_score_events(player_id, game_id))

    def recompute_player(self, player_id: str) -> PlayerRecord:
        """Rebuild a player's high scores and cached totals from raw events."""
        self._require_player(player_id)
        with self.store.record():
            self.store.delete_high_scores(player_id)
            for event in self.store.get_score_events(player_id):
                self._apply_high_score(event)
            player = self._refresh_player(player_id)
        logger.info(f"[recompute] player={player_id} games={player.games_played} total={player.total_score}")
        return player
