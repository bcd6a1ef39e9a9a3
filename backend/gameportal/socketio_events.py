from flask_socketio import join_room, leave_room, emit
from flask import current_app
from gameportal import socketio
from gameportal.catalog import normalize_game_id


def leaderboard_room(game_id=None) -> str:
    return f"leaderboard:{game_id or 'all'}"


def player_room(player_id) -> str:
    return f"player:{player_id}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_watch_leaderboard(data):
    raw = (data or {}).get('gameId')
    game_id = normalize_game_id(raw) if raw else None
    if raw and not game_id:
        emit('error', {'message': f'Unknown game: {raw}'})
        return
    room = leaderboard_room(game_id)
    join_room(room)
    emit('watching', {'room': room})


def handle_watch_player(data):
    player_id = (data or {}).get('playerId')
    if not player_id:
        emit('error', {'message': 'playerId is required'})
        return
    room = player_room(player_id)
    join_room(room)
    emit('watching', {'room': room})


def handle_unwatch(data):
    room = (data or {}).get('room')
    if not room:
        emit('error', {'message': 'room is required'})
        return
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def notify_score_recorded(event, player) -> None:
    """Push a freshly recorded score to the player's and leaderboards' watchers."""
    payload = {'score': event.to_dict(), 'player': player.to_dict()}
    for namespace in _namespaces():
        socketio.emit('score_recorded', payload, to=player_room(player.id), namespace=namespace)
        for room in (leaderboard_room(event.game_id), leaderboard_room()):
            socketio.emit('leaderboard_update', {'gameId': event.game_id}, to=room, namespace=namespace)


def _namespaces():
    if current_app and current_app.config.get('TESTING'):
        return ('/ws', '/')
    return ('/ws',)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('watch_leaderboard', handle_watch_leaderboard, namespace=namespace)
        socketio.on_event('watch_player', handle_watch_player, namespace=namespace)
        socketio.on_event('unwatch', handle_unwatch, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
