import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


@dataclass
class PlayerRecord:
    id: str
    name: str
    created_at: datetime
    # Derived from the player's score events; only the aggregator writes these.
    level: int = 1
    total_score: int = 0
    games_played: int = 0
    high_score: int = 0
    average_score: int = 0
    total_play_time: float = 0.0

    @property
    def avatar(self) -> str:
        return self.name[:1].upper() if self.name else '?'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'avatar': self.avatar,
            'createdAt': _iso(self.created_at),
            'level': self.level,
            'totalScore': self.total_score,
            'gamesPlayed': self.games_played,
            'highScore': self.high_score,
            'averageScore': self.average_score,
            'totalPlayTime': self.total_play_time,
        }


@dataclass(frozen=True)
class ScoreEventRecord:
    player_id: str
    game_id: str
    score: int
    time_played: float = 0.0
    level_reached: Optional[int] = None
    idempotency_key: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'playerId': self.player_id,
            'gameId': self.game_id,
            'score': self.score,
            'timePlayed': self.time_played,
            'levelReached': self.level_reached,
            'idempotencyKey': self.idempotency_key,
            'createdAt': _iso(self.created_at),
        }


@dataclass(frozen=True)
class HighScoreRecord:
    player_id: str
    game_id: str
    high_score: int
    achieved_at: datetime
    id: str = field(default_factory=new_id)
    # Creation order of the (player, game) row; final leaderboard tie-break.
    seq: int = 0

    def to_dict(self):
        return {
            'id': self.id,
            'playerId': self.player_id,
            'gameId': self.game_id,
            'highScore': self.high_score,
            'achievedAt': _iso(self.achieved_at),
        }


def player_snapshot(player: PlayerRecord) -> PlayerRecord:
    """Detached copy, so callers never hold a store's live object."""
    return PlayerRecord(**asdict(player))
