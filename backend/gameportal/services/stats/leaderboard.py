import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from gameportal.catalog import get_game
from .aggregator import validate_limit
from .records import PlayerRecord
from .store import ScoreStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass(frozen=True)
class LeaderboardRow:
    rank: int
    player: PlayerRecord
    game_id: str
    high_score: int
    achieved_at: datetime

    def to_dict(self):
        # Player fields flattened in, matching the joined rows the web client reads
        row = self.player.to_dict()
        row.update({
            'rank': self.rank,
            'playerId': self.player.id,
            'gameId': self.game_id,
            'highScore': self.high_score,
            'achievedAt': self.achieved_at.isoformat(),
        })
        return row


class LeaderboardRanker:
    """Ranks (player, game) high-score rows, best first."""

    def __init__(self, store: ScoreStore, max_limit: int = MAX_LIMIT):
        self.store = store
        self.max_limit = max_limit

    def get_leaderboard(self, game_id: Optional[str] = None, limit: int = DEFAULT_LIMIT) -> List[LeaderboardRow]:
        limit = min(validate_limit(limit), self.max_limit)
        if game_id is not None:
            game_id = get_game(game_id).id

        # Ties: earlier achievement first, then the older (player, game) row.
        rows = sorted(
            self.store.get_high_scores(game_id=game_id),
            key=lambda hs: (-hs.high_score, hs.achieved_at, hs.seq),
        )

        ranked: List[LeaderboardRow] = []
        players = {}
        for hs in rows:
            if len(ranked) >= limit:
                break
            if hs.player_id not in players:
                players[hs.player_id] = self.store.get_player(hs.player_id)
            player = players[hs.player_id]
            if player is None:
                logger.warning(f"[leaderboard] skipping high score {hs.id}: player {hs.player_id} missing")
                continue
            ranked.append(LeaderboardRow(
                rank=len(ranked) + 1,
                player=player,
                game_id=hs.game_id,
                high_score=hs.high_score,
                achieved_at=hs.achieved_at,
            ))
        return ranked
