from flask import Blueprint, jsonify, request, current_app

from gameportal.catalog import GAMES
from gameportal.socketio_events import notify_score_recorded
from . import get_aggregator, get_ranker, int_arg

scores = Blueprint('scores', __name__)


@scores.route('/games', methods=['GET'])
def list_games():
    return jsonify([g.to_dict() for g in GAMES])


@scores.route('/scores', methods=['POST'])
def save_score():
    data = request.get_json(silent=True) or {}
    player_id = data.get('playerId')
    game_id = data.get('gameId')
    score = data.get('score')
    if not player_id or not game_id or score is None:
        return jsonify({'error': 'Missing required fields'}), 400

    event, player = get_aggregator().record_score(
        player_id,
        game_id,
        score,
        time_played=data.get('timePlayed') or 0,
        level_reached=data.get('levelReached'),
        idempotency_key=data.get('idempotencyKey'),
    )
    notify_score_recorded(event, player)
    return jsonify({'score': event.to_dict(), 'player': player.to_dict()}), 201


@scores.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    game_id = request.args.get('gameId') or None
    limit = int_arg('limit', int(current_app.config.get('LEADERBOARD_DEFAULT_LIMIT', 10)))
    rows = get_ranker().get_leaderboard(game_id, limit)
    return jsonify([row.to_dict() for row in rows])
