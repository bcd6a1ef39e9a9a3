"""The fixed set of ten portal games.

Game ids are lowercase with separators stripped. The web client historically
sent hyphenated ids (``quick-math``); ``normalize_game_id`` maps those onto the
canonical form so both spellings land on the same high-score rows.
"""
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidArgument


@dataclass(frozen=True)
class GameInfo:
    id: str
    name: str
    description: str
    difficulty: str
    min_score: int = 0

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'difficulty': self.difficulty,
            'minScore': self.min_score,
        }


GAMES = (
    GameInfo('tictactoe', 'Tic Tac Toe', 'Classic strategy game vs AI', 'Easy'),
    GameInfo('patternmemory', 'Pattern Memory', 'Test your memory skills', 'Medium'),
    GameInfo('quickmath', 'Quick Math', 'Solve math problems fast', 'Medium'),
    GameInfo('wordscramble', 'Word Scramble', 'Unscramble words quickly', 'Easy'),
    GameInfo('reactiontime', 'Reaction Time', 'Test your reflexes', 'Easy'),
    GameInfo('numberguessing', 'Number Guessing', 'Guess the mystery number', 'Easy'),
    GameInfo('colormatch', 'Color Match', 'Match colors to names', 'Medium'),
    GameInfo('simonsays', 'Simon Says', 'Memory pattern game', 'Hard'),
    GameInfo('typingspeed', 'Typing Speed', 'Test your typing skills', 'Medium'),
    GameInfo('rockpaperscissors', 'Rock Paper Scissors', 'Classic hand game vs AI', 'Easy'),
)

_BY_ID = {g.id: g for g in GAMES}
GAME_IDS = tuple(_BY_ID)


def normalize_game_id(game_id) -> Optional[str]:
    if not isinstance(game_id, str):
        return None
    key = game_id.strip().lower().replace('-', '').replace('_', '').replace(' ', '')
    return key if key in _BY_ID else None


def get_game(game_id) -> GameInfo:
    """Resolve a (possibly hyphenated) game id or raise InvalidArgument."""
    key = normalize_game_id(game_id)
    if key is None:
        raise InvalidArgument(f'Unknown game: {game_id!r}')
    return _BY_ID[key]
