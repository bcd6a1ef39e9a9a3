import logging
import threading
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from gameportal import db
from gameportal.errors import PersistenceFailure
from gameportal.models import HighScore, Player, ScoreEvent
from .records import HighScoreRecord, PlayerRecord, ScoreEventRecord
from .store import ScoreStore

logger = logging.getLogger(__name__)


class SqlStore(ScoreStore):
    """ScoreStore over the Flask-SQLAlchemy session.

    Each write commits on its own unless it runs inside ``record()``, in
    which case the unit commits once at the end or rolls back entirely.
    Must be used inside an application context.
    """

    def __init__(self):
        self._local = threading.local()

    @property
    def _depth(self) -> int:
        return getattr(self._local, 'depth', 0)

    @_depth.setter
    def _depth(self, value: int) -> None:
        self._local.depth = value

    @contextmanager
    def _writing(self, what: str):
        try:
            yield
            if self._depth:
                db.session.flush()
            else:
                db.session.commit()
        except SQLAlchemyError as exc:
            if not self._depth:
                db.session.rollback()
            logger.error(f"[sql-store] {what} failed: {exc}")
            raise PersistenceFailure(f'{what} failed') from exc

    def _read(self, query):
        try:
            return query()
        except SQLAlchemyError as exc:
            logger.error(f"[sql-store] read failed: {exc}")
            raise PersistenceFailure('read failed') from exc

    @contextmanager
    def record(self):
        if self._depth:
            yield self
            return
        self._depth = 1
        try:
            yield self
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"[sql-store] unit of work failed: {exc}")
            raise PersistenceFailure('write failed') from exc
        except Exception:
            db.session.rollback()
            raise
        finally:
            self._depth = 0

    # ---- players ----

    def create_player(self, name: str) -> PlayerRecord:
        player = Player(name=name)
        with self._writing('create_player'):
            db.session.add(player)
        return player.to_record()

    def get_player(self, player_id: str) -> Optional[PlayerRecord]:
        player = self._read(lambda: Player.query.filter_by(id=player_id).first())
        return player.to_record() if player else None

    def list_players(self) -> List[PlayerRecord]:
        rows = self._read(lambda: Player.query.order_by(Player.created_at).all())
        return [p.to_record() for p in rows]

    def update_player(self, player_id: str, **fields) -> Optional[PlayerRecord]:
        self._check_fields(fields)
        player = self._read(lambda: Player.query.filter_by(id=player_id).first())
        if player is None:
            return None
        with self._writing('update_player'):
            for key, value in fields.items():
                setattr(player, key, value)
            db.session.add(player)
        return player.to_record()

    def delete_player(self, player_id: str) -> bool:
        player = self._read(lambda: Player.query.filter_by(id=player_id).first())
        if player is None:
            return False
        with self._writing('delete_player'):
            # Relationship cascade removes the player's events and high scores
            db.session.delete(player)
        return True

    # ---- score events ----

    def append_score_event(self, event: ScoreEventRecord) -> ScoreEventRecord:
        with self._writing('append_score_event'):
            db.session.add(ScoreEvent.from_record(event))
        return event

    def get_score_events(self, player_id: str, game_id: Optional[str] = None) -> List[ScoreEventRecord]:
        def query():
            q = ScoreEvent.query.filter_by(player_id=player_id)
            if game_id is not None:
                q = q.filter_by(game_id=game_id)
            return q.order_by(ScoreEvent.seq).all()
        return [e.to_record() for e in self._read(query)]

    def find_score_event(self, player_id: str, idempotency_key: str) -> Optional[ScoreEventRecord]:
        row = self._read(
            lambda: ScoreEvent.query.filter_by(player_id=player_id, idempotency_key=idempotency_key).first()
        )
        return row.to_record() if row else None

    # ---- high scores ----

    def get_high_score(self, player_id: str, game_id: str) -> Optional[HighScoreRecord]:
        row = self._read(lambda: HighScore.query.filter_by(player_id=player_id, game_id=game_id).first())
        return row.to_record() if row else None

    def upsert_high_score(self, record: HighScoreRecord) -> HighScoreRecord:
        row = self._read(
            lambda: HighScore.query.filter_by(player_id=record.player_id, game_id=record.game_id).first()
        )
        with self._writing('upsert_high_score'):
            if row is None:
                row = HighScore(
                    id=record.id,
                    player_id=record.player_id,
                    game_id=record.game_id,
                    high_score=record.high_score,
                    achieved_at=record.achieved_at,
                )
            else:
                row.high_score = record.high_score
                row.achieved_at = record.achieved_at
            db.session.add(row)
        return row.to_record()

    def get_high_scores(self, player_id: Optional[str] = None, game_id: Optional[str] = None) -> List[HighScoreRecord]:
        def query():
            q = HighScore.query
            if player_id is not None:
                q = q.filter_by(player_id=player_id)
            if game_id is not None:
                q = q.filter_by(game_id=game_id)
            return q.order_by(HighScore.seq).all()
        return [hs.to_record() for hs in self._read(query)]

    def delete_high_scores(self, player_id: str) -> None:
        with self._writing('delete_high_scores'):
            HighScore.query.filter_by(player_id=player_id).delete()
