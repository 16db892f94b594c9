import os
import sys
import pytest

# Ensure the backend root (containing the `timing_arena` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from timing_arena import create_app, db, socketio
from timing_arena.services.games.state import Outbound


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SCHEDULER = 'manual'
    CORS_ORIGINS = ['http://localhost:5173']
    LOG_LEVEL = 'DEBUG'


class FakeLeaderboard:
    """Stands in for LeaderboardStore in coordinator tests."""

    def __init__(self):
        self.recorded = []

    def record_many(self, rows):
        self.recorded.extend(rows)

    def record(self, identity_key, username, accuracy_ms):
        self.recorded.append((identity_key, username, accuracy_ms))

    def standings(self, n, pending=()):
        rows = [
            {'identityKey': key, 'username': name, 'bestAccuracyMs': best, 'gamesPlayed': 1, 'lastPlayedAt': None}
            for key, name, best in pending
        ]
        return sorted(rows, key=lambda r: (r['bestAccuracyMs'] is None, r['bestAccuracyMs'] or 0))[:n]


def events_named(messages, name):
    return [m for m in messages if isinstance(m, Outbound) and m.event == name]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import timing_arena.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def gateway(flask_app):
    return flask_app.extensions['timing_arena']


@pytest.fixture()
def scheduler(flask_app):
    return flask_app.extensions['timing_arena.scheduler']


@pytest.fixture()
def connect(flask_app):
    """Factory for Socket.IO test clients on /ws; returns (client, player id)."""
    clients = []

    def _connect():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        clients.append(test_client)
        received = test_client.get_received('/ws')
        sid = next(e['args'][0]['playerId'] for e in received if e['name'] == 'connected')
        return test_client, sid

    yield _connect
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except RuntimeError:
            pass
