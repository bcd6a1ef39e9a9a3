"""Persistence gateway for players, score events and high scores.

``ScoreStore`` is the contract the aggregator and ranker are built on.
``MemoryStore`` keeps everything in process and can mirror itself to a JSON
file after every committed write; ``SqlStore`` (see ``sql_store``) maps the
same contract onto the Flask-SQLAlchemy models.
"""
import json
import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import asdict, replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from gameportal.errors import PersistenceFailure
from .records import (
    HighScoreRecord,
    PlayerRecord,
    ScoreEventRecord,
    new_id,
    player_snapshot,
    utcnow,
)

logger = logging.getLogger(__name__)

# Fields a caller may change through update_player.
PLAYER_FIELDS = frozenset({
    'name', 'level', 'total_score', 'games_played', 'high_score',
    'average_score', 'total_play_time',
})


class ScoreStore:
    """Abstract store. Methods return detached records, never live objects."""

    def create_player(self, name: str) -> PlayerRecord:
        raise NotImplementedError

    def get_player(self, player_id: str) -> Optional[PlayerRecord]:
        raise NotImplementedError

    def list_players(self) -> List[PlayerRecord]:
        raise NotImplementedError

    def update_player(self, player_id: str, **fields) -> Optional[PlayerRecord]:
        raise NotImplementedError

    def delete_player(self, player_id: str) -> bool:
        raise NotImplementedError

    def append_score_event(self, event: ScoreEventRecord) -> ScoreEventRecord:
        raise NotImplementedError

    def get_score_events(self, player_id: str, game_id: Optional[str] = None) -> List[ScoreEventRecord]:
        """Events for a player in append order."""
        raise NotImplementedError

    def find_score_event(self, player_id: str, idempotency_key: str) -> Optional[ScoreEventRecord]:
        raise NotImplementedError

    def get_high_score(self, player_id: str, game_id: str) -> Optional[HighScoreRecord]:
        raise NotImplementedError

    def upsert_high_score(self, record: HighScoreRecord) -> HighScoreRecord:
        raise NotImplementedError

    def get_high_scores(self, player_id: Optional[str] = None, game_id: Optional[str] = None) -> List[HighScoreRecord]:
        raise NotImplementedError

    def delete_high_scores(self, player_id: str) -> None:
        raise NotImplementedError

    @contextmanager
    def record(self):
        """Group several writes into one unit; all of them land or none do."""
        yield self

    @staticmethod
    def _check_fields(fields) -> None:
        unknown = set(fields) - PLAYER_FIELDS
        if unknown:
            raise ValueError(f'Unknown player fields: {sorted(unknown)}')


def _dump_ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _load_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class MemoryStore(ScoreStore):
    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._lock = threading.RLock()
        self._players: Dict[str, PlayerRecord] = {}
        self._events: List[ScoreEventRecord] = []
        self._high_scores: Dict[Tuple[str, str], HighScoreRecord] = {}
        self._seq = 0
        self._depth = 0
        if path and os.path.exists(path):
            self._load()

    def clear(self) -> None:
        with self.record():
            self._players, self._events, self._high_scores, self._seq = {}, [], {}, 0

    # ---- players ----

    def create_player(self, name: str) -> PlayerRecord:
        player = PlayerRecord(id=new_id(), name=name, created_at=utcnow())
        with self.record():
            self._players[player.id] = player
        return player_snapshot(player)

    def get_player(self, player_id: str) -> Optional[PlayerRecord]:
        with self._lock:
            player = self._players.get(player_id)
            return player_snapshot(player) if player else None

    def list_players(self) -> List[PlayerRecord]:
        with self._lock:
            return [player_snapshot(p) for p in self._players.values()]

    def update_player(self, player_id: str, **fields) -> Optional[PlayerRecord]:
        self._check_fields(fields)
        with self.record():
            player = self._players.get(player_id)
            if player is None:
                return None
            for key, value in fields.items():
                setattr(player, key, value)
            return player_snapshot(player)

    def delete_player(self, player_id: str) -> bool:
        with self.record():
            if self._players.pop(player_id, None) is None:
                return False
            self._events = [e for e in self._events if e.player_id != player_id]
            self._drop_high_scores(player_id)
            return True

    # ---- score events ----

    def append_score_event(self, event: ScoreEventRecord) -> ScoreEventRecord:
        with self.record():
            if event.player_id not in self._players:
                raise PersistenceFailure(f'Unknown player reference: {event.player_id}')
            self._events.append(event)
        return event

    def get_score_events(self, player_id: str, game_id: Optional[str] = None) -> List[ScoreEventRecord]:
        with self._lock:
            return [
                e for e in self._events
                if e.player_id == player_id and (game_id is None or e.game_id == game_id)
            ]

    def find_score_event(self, player_id: str, idempotency_key: str) -> Optional[ScoreEventRecord]:
        with self._lock:
            for e in self._events:
                if e.player_id == player_id and e.idempotency_key == idempotency_key:
                    return e
        return None

    # ---- high scores ----

    def get_high_score(self, player_id: str, game_id: str) -> Optional[HighScoreRecord]:
        with self._lock:
            return self._high_scores.get((player_id, game_id))

    def upsert_high_score(self, record: HighScoreRecord) -> HighScoreRecord:
        key = (record.player_id, record.game_id)
        with self.record():
            current = self._high_scores.get(key)
            if current is None:
                self._seq += 1
                record = replace(record, seq=self._seq)
            else:
                record = replace(record, id=current.id, seq=current.seq)
            self._high_scores[key] = record
        return record

    def get_high_scores(self, player_id: Optional[str] = None, game_id: Optional[str] = None) -> List[HighScoreRecord]:
        with self._lock:
            rows = [
                hs for hs in self._high_scores.values()
                if (player_id is None or hs.player_id == player_id)
                and (game_id is None or hs.game_id == game_id)
            ]
        return sorted(rows, key=lambda hs: hs.seq)

    def delete_high_scores(self, player_id: str) -> None:
        with self.record():
            self._drop_high_scores(player_id)

    def _drop_high_scores(self, player_id: str) -> None:
        for key in [k for k in self._high_scores if k[0] == player_id]:
            del self._high_scores[key]

    # ---- units of work ----

    @contextmanager
    def record(self):
        with self._lock:
            saved = self._capture()
            self._depth += 1
            try:
                yield self
                # Only the outermost unit writes the snapshot; a failed write undoes the unit.
                if self._depth == 1 and self.path:
                    self._save()
            except Exception:
                self._players, self._events, self._high_scores, self._seq = saved
                raise
            finally:
                self._depth -= 1

    def _capture(self):
        players = {pid: player_snapshot(p) for pid, p in self._players.items()}
        return players, list(self._events), dict(self._high_scores), self._seq

    # ---- JSON snapshot ----

    def _save(self) -> None:
        payload = {
            'players': [
                dict(asdict(p), created_at=_dump_ts(p.created_at)) for p in self._players.values()
            ],
            'scoreEvents': [
                dict(asdict(e), created_at=_dump_ts(e.created_at)) for e in self._events
            ],
            'highScores': [
                dict(asdict(hs), achieved_at=_dump_ts(hs.achieved_at)) for hs in self._high_scores.values()
            ],
        }
        tmp_path = f'{self.path}.tmp'
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.error(f"[store-save] path={self.path} error={exc}")
            raise PersistenceFailure(f'Could not write {self.path}: {exc}') from exc

    def _load(self) -> None:
        try:
            with open(self.path, 'r', encoding='utf-8') as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as exc:
            raise PersistenceFailure(f'Could not read {self.path}: {exc}') from exc

        for row in payload.get('players', []):
            row['created_at'] = _load_ts(row.get('created_at'))
            player = PlayerRecord(**row)
            self._players[player.id] = player
        for row in payload.get('scoreEvents', []):
            row['created_at'] = _load_ts(row.get('created_at'))
            self._events.append(ScoreEventRecord(**row))
        for row in payload.get('highScores', []):
            row['achieved_at'] = _load_ts(row.get('achieved_at'))
            hs = HighScoreRecord(**row)
            self._high_scores[(hs.player_id, hs.game_id)] = hs
            self._seq = max(self._seq, hs.seq)
        logger.info(
            f"[store-load] path={self.path} players={len(self._players)} "
            f"events={len(self._events)} high_scores={len(self._high_scores)}"
        )
