"""Player statistics and scoring services.

Framework-free: everything here works against a ``ScoreStore`` handed in
at construction time. HTTP routes and socket handlers build these around
the store the app factory configured.
"""
from .aggregator import PlayerStats, StatsAggregator, derive_stats
from .leaderboard import LeaderboardRanker, LeaderboardRow
from .records import HighScoreRecord, PlayerRecord, ScoreEventRecord
from .session import GameSession
from .store import MemoryStore, ScoreStore
