import os
import sys
from datetime import datetime, timedelta
import pytest

# Ensure the backend root (containing the `arena` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from arena import create_app, db, socketio
from arena.config import Config
from arena.persistence import MemoryRoomStore, PersistenceAdapter
from arena.services.lifecycle import LifecycleMonitor
from arena.services.registry import SessionRegistry
from arena.services.relay import SignalingRelay
from arena.services.tracker import ConnectionTracker


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    PERSISTENCE_BACKEND = 'sql'
    ALLOWED_ORIGINS = ['http://localhost:5173']
    SOCKETIO_NAMESPACE = '/'
    XIRSYS_IDENT = None
    XIRSYS_SECRET = None
    TURN_URL = None


class FakeClock:
    def __init__(self, start=datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def connect(flask_app):
    """Open Socket.IO test clients; returns (client, connection id)."""
    opened = []

    def _connect():
        sio = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        opened.append(sio)
        connected = [p for p in sio.get_received() if p['name'] == 'connected']
        return sio, connected[0]['args'][0]['connectionId']

    yield _connect
    for sio in opened:
        if sio.is_connected():
            sio.disconnect()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sent():
    return []


@pytest.fixture()
def registry(clock):
    return SessionRegistry(PersistenceAdapter(MemoryRoomStore()), clock=clock)


@pytest.fixture()
def tracker(clock):
    return ConnectionTracker(clock=clock)


@pytest.fixture()
def relay(tracker, sent):
    return SignalingRelay(tracker, sent.append)


@pytest.fixture()
def monitor(registry, tracker, relay, clock):
    return LifecycleMonitor(
        registry,
        tracker,
        relay,
        clock=clock,
        stale_timeout=timedelta(minutes=30),
        max_age=timedelta(hours=24),
    )


def events(received, name):
    return [p['args'][0] for p in received if p['name'] == name]
