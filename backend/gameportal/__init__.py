from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def build_store(flask_app):
    """Create the score store named by SCORE_STORE."""
    kind = flask_app.config.get('SCORE_STORE', 'sql')
    if kind == 'memory':
        from gameportal.services.stats.store import MemoryStore
        return MemoryStore(path=flask_app.config.get('MEMORY_STORE_PATH'))
    if kind == 'sql':
        from gameportal.services.stats.sql_store import SqlStore
        return SqlStore()
    raise ValueError(f"Unknown SCORE_STORE {kind!r}; expected 'sql' or 'memory'")


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    # Ensure models are registered on the metadata before anything queries them
    from gameportal import models  # noqa: F401

    flask_app.extensions['score_store'] = build_store(flask_app)
    flask_app.logger.info(f"[store] using {type(flask_app.extensions['score_store']).__name__}")

    # Import and register blueprints here
    from gameportal.main import main
    flask_app.register_blueprint(main)

    from gameportal.api.players import players
    flask_app.register_blueprint(players, url_prefix='/api/players')

    from gameportal.api.scores import scores
    flask_app.register_blueprint(scores, url_prefix='/api')

    from gameportal.errors import PortalError, PersistenceFailure

    @flask_app.errorhandler(PortalError)
    def handle_portal_error(exc):
        if isinstance(exc, PersistenceFailure):
            flask_app.logger.error(f"[persistence] {exc}")
            return jsonify({'error': 'Internal server error'}), exc.status_code
        return jsonify({'error': str(exc)}), exc.status_code

    from gameportal.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the player store."""
        from gameportal.api import get_store
        with flask_app.app_context():
            store = get_store()
            if hasattr(store, 'clear'):
                store.clear()
            else:
                db.session.remove()
                db.drop_all()
                db.create_all()

            # Seed players
            for name in ['Ana', 'Bo', 'Cy']:
                store.create_player(name)
            print('Player store has been reset and seeded!')

    @click.command('recompute-stats')
    @click.option('--player', 'player_id', default=None, help='Only recompute this player id.')
    def recompute_stats_command(player_id):
        """Re-derives cached player totals and high scores from score events."""
        from gameportal.api import get_aggregator, get_store
        with flask_app.app_context():
            aggregator = get_aggregator()
            ids = [player_id] if player_id else [p.id for p in get_store().list_players()]
            for pid in ids:
                aggregator.recompute_player(pid)
            print(f'Recomputed stats for {len(ids)} player(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(recompute_stats_command)

    return flask_app
