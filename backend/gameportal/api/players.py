from flask import Blueprint, jsonify, request, current_app

from gameportal.errors import PlayerNotFound
from . import get_aggregator, get_store, int_arg

players = Blueprint('players', __name__)


def _clean_name(data):
    name = data.get('name')
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip()[:64]


@players.route('', methods=['POST'])
def create_player():
    data = request.get_json(silent=True) or {}
    name = _clean_name(data)
    if not name:
        return jsonify({'error': 'Name is required'}), 400

    player = get_store().create_player(name)
    current_app.logger.info(f"[player-create] player={player.id} name={player.name!r}")
    return jsonify(player.to_dict()), 201


@players.route('', methods=['GET'])
def list_players():
    return jsonify([p.to_dict() for p in get_store().list_players()])


@players.route('/<string:player_id>', methods=['GET'])
def get_player(player_id):
    player = get_store().get_player(player_id)
    if player is None:
        raise PlayerNotFound(player_id)
    return jsonify(player.to_dict())


@players.route('/<string:player_id>', methods=['PATCH'])
def rename_player(player_id):
    data = request.get_json(silent=True) or {}
    name = _clean_name(data)
    if not name:
        return jsonify({'error': 'Name is required'}), 400
    player = get_store().update_player(player_id, name=name)
    if player is None:
        raise PlayerNotFound(player_id)
    return jsonify(player.to_dict())


@players.route('/<string:player_id>', methods=['DELETE'])
def delete_player(player_id):
    if not get_store().delete_player(player_id):
        raise PlayerNotFound(player_id)
    current_app.logger.info(f"[player-delete] player={player_id}")
    return jsonify({'deleted': True})


@players.route('/<string:player_id>/stats', methods=['GET'])
def get_player_stats(player_id):
    limit = int_arg('limit', int(current_app.config.get('RECENT_SCORES_LIMIT', 10)))
    stats = get_aggregator().get_player_stats(player_id, recent_limit=limit)
    return jsonify(stats.to_dict())


@players.route('/<string:player_id>/scores', methods=['GET'])
def get_player_scores(player_id):
    game_id = request.args.get('gameId') or None
    history = get_aggregator().get_history(player_id, game_id)
    return jsonify([e.to_dict() for e in history])
