import time

from gameportal.catalog import get_game
from gameportal.errors import InvalidArgument


class GameSession:
    """One play-through of one game by one player.

    The game front end only knows its final score; the session pairs it
    with the active player and game and hands it to the aggregator.
    """

    def __init__(self, aggregator, player_id: str, game_id: str, clock=time.monotonic):
        self.aggregator = aggregator
        self.player_id = player_id
        self.game_id = get_game(game_id).id
        self._clock = clock
        self.started_at = clock()
        self.completed = False

    def elapsed(self) -> float:
        return max(0.0, self._clock() - self.started_at)

    def on_complete(self, score: int, level_reached=None):
        if self.completed:
            raise InvalidArgument('Session already completed')
        result = self.aggregator.record_score(
            self.player_id,
            self.game_id,
            score,
            time_played=round(self.elapsed(), 3),
            level_reached=level_reached,
        )
        self.completed = True
        return result
