from datetime import timezone

from gameportal import db
from gameportal.services.stats.records import (
    HighScoreRecord,
    PlayerRecord,
    ScoreEventRecord,
    new_id,
    utcnow,
)


def _aware(ts):
    # SQLite hands back naive datetimes; everything we write is UTC.
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    # Cached aggregates, rewritten after each recorded score
    level = db.Column(db.Integer, nullable=False, default=1)
    total_score = db.Column(db.Integer, nullable=False, default=0)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    high_score = db.Column(db.Integer, nullable=False, default=0)
    average_score = db.Column(db.Integer, nullable=False, default=0)
    total_play_time = db.Column(db.Float, nullable=False, default=0.0)

    score_events = db.relationship(
        'ScoreEvent', back_populates='player', cascade='all, delete-orphan'
    )
    high_scores = db.relationship(
        'HighScore', back_populates='player', cascade='all, delete-orphan'
    )

    def to_record(self) -> PlayerRecord:
        return PlayerRecord(
            id=self.id,
            name=self.name,
            created_at=_aware(self.created_at),
            level=self.level,
            total_score=self.total_score,
            games_played=self.games_played,
            high_score=self.high_score,
            average_score=self.average_score,
            total_play_time=self.total_play_time,
        )


class ScoreEvent(db.Model):
    __tablename__ = 'score_event'
    __table_args__ = (
        db.UniqueConstraint('player_id', 'idempotency_key', name='uq_score_event_idempotency'),
    )
    # Surrogate key doubles as the append order
    seq = db.Column(db.Integer, primary_key=True, autoincrement=True)
    id = db.Column(db.String(32), unique=True, nullable=False, index=True)
    player_id = db.Column(db.String(32), db.ForeignKey('player.id', ondelete='CASCADE'), nullable=False, index=True)
    game_id = db.Column(db.String(32), nullable=False, index=True)
    score = db.Column(db.Integer, nullable=False)
    time_played = db.Column(db.Float, nullable=False, default=0.0)
    level_reached = db.Column(db.Integer, nullable=True)
    idempotency_key = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    player = db.relationship('Player', back_populates='score_events')

    @classmethod
    def from_record(cls, record: ScoreEventRecord) -> 'ScoreEvent':
        return cls(
            id=record.id,
            player_id=record.player_id,
            game_id=record.game_id,
            score=record.score,
            time_played=record.time_played,
            level_reached=record.level_reached,
            idempotency_key=record.idempotency_key,
            created_at=record.created_at,
        )

    def to_record(self) -> ScoreEventRecord:
        return ScoreEventRecord(
            id=self.id,
            player_id=self.player_id,
            game_id=self.game_id,
            score=self.score,
            time_played=self.time_played,
            level_reached=self.level_reached,
            idempotency_key=self.idempotency_key,
            created_at=_aware(self.created_at),
        )


class HighScore(db.Model):
    __tablename__ = 'high_score'
    __table_args__ = (
        db.UniqueConstraint('player_id', 'game_id', name='uq_high_score_player_game'),
    )
    seq = db.Column(db.Integer, primary_key=True, autoincrement=True)
    id = db.Column(db.String(32), unique=True, nullable=False, default=new_id)
    player_id = db.Column(db.String(32), db.ForeignKey('player.id', ondelete='CASCADE'), nullable=False, index=True)
    game_id = db.Column(db.String(32), nullable=False, index=True)
    high_score = db.Column(db.Integer, nullable=False)
    achieved_at = db.Column(db.DateTime(timezone=True), nullable=False)

    player = db.relationship('Player', back_populates='high_scores')

    def to_record(self) -> HighScoreRecord:
        return HighScoreRecord(
            id=self.id,
            player_id=self.player_id,
            game_id=self.game_id,
            high_score=self.high_score,
            achieved_at=_aware(self.achieved_at),
            seq=self.seq,
        )
