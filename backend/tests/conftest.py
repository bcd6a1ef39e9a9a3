import os
import sys
import pytest

# Ensure the backend root (containing the `gameportal` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from gameportal import create_app, db, socketio
from gameportal.services.stats import MemoryStore, StatsAggregator, LeaderboardRanker


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SCORE_STORE = 'sql'
    MEMORY_STORE_PATH = None
    LEADERBOARD_DEFAULT_LIMIT = 10
    LEADERBOARD_MAX_LIMIT = 100
    RECENT_SCORES_LIMIT = 10
    CORS_ORIGINS = ['http://localhost:5173']


class MemoryTestConfig(TestConfig):
    SCORE_STORE = 'memory'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import gameportal.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture(params=['memory', 'sql'])
def store(request):
    """The same tests run against both store implementations."""
    if request.param == 'memory':
        return MemoryStore()
    # SqlStore needs the app context and tables from flask_app
    request.getfixturevalue('flask_app')
    from gameportal.services.stats.sql_store import SqlStore
    return SqlStore()


@pytest.fixture()
def aggregator(store):
    return StatsAggregator(store)


@pytest.fixture()
def ranker(store):
    return LeaderboardRanker(store)


@pytest.fixture()
def memory_app():
    application = create_app(MemoryTestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def memory_client(memory_app):
    return memory_app.test_client()
