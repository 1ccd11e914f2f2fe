import os
import random
import sys

import pytest

# Ensure the backend root (containing the `ransomnotes` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from ransomnotes.config import Config
from ransomnotes.game.service import GameService
from ransomnotes.game.timers import TimerCoordinator
from ransomnotes.server import create_app


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SOCKETIO_ASYNC_MODE = 'threading'
    TRUST_PROXY_HEADERS = False
    VOTE_MODE = 'peer'
    MAX_PLAYERS = 8
    MIN_PLAYERS = 2
    WIN_SCORE = 5
    WORD_POOL_SIZE = 15
    SUBMISSION_DURATION_SEC = 90
    VOTE_DURATION_SEC = 30
    RECONNECT_GRACE_SEC = 30
    WORDS_FILE = ''


class JudgeConfig(TestConfig):
    VOTE_MODE = 'judge'


class ManualTimer:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        # Like BackgroundTimer, a cancelled timer never runs.
        if self.cancelled:
            return
        self.fired = True
        self.fn()


class ManualTimers:
    """Timer factory that only fires when a test says so."""

    def __init__(self):
        self.created = []

    def __call__(self, delay, fn):
        timer = ManualTimer(delay, fn)
        self.created.append(timer)
        return timer

    def live(self):
        return [t for t in self.created if t.started and not t.cancelled and not t.fired]

    def fire_all(self):
        for t in list(self.live()):
            t.fire()


class FakeClock:
    def __init__(self, start_ms=1_700_000_000_000):
        self.now = start_ms

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += int(seconds * 1000)


@pytest.fixture()
def manual_timers():
    return ManualTimers()


@pytest.fixture()
def clock():
    return FakeClock()


def _make_game(config, manual_timers, clock, seed=1234):
    return GameService(
        config,
        timers=TimerCoordinator(timer_factory=manual_timers),
        clock=clock,
        rng=random.Random(seed),
    )


@pytest.fixture()
def game(manual_timers, clock):
    service = _make_game(TestConfig, manual_timers, clock)
    yield service
    service.shutdown()


@pytest.fixture()
def judge_game(manual_timers, clock):
    service = _make_game(JudgeConfig, manual_timers, clock)
    yield service
    service.shutdown()


@pytest.fixture()
def app_and_socketio(game):
    application, sio = create_app(TestConfig, game=game)
    return application, sio


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(app_and_socketio):
    application, sio = app_and_socketio
    clients = []

    def _make():
        c = sio.test_client(application, flask_test_client=application.test_client())
        clients.append(c)
        return c

    yield _make
    for c in clients:
        try:
            if c.is_connected():
                c.disconnect()
        except Exception:
            pass


def ready_lobby(game, nicknames=('Host', 'P2', 'P3')):
    """Create a lobby with every player READY; returns (lobby, players)."""
    from ransomnotes.game.models import PlayerStatus

    host_name, *others = nicknames
    lobby = game.create_lobby(host_name, 'sid-1')
    players = [lobby.host]
    for i, name in enumerate(others, start=2):
        players.append(game.membership.join(lobby.code, name, f'sid-{i}'))
    for p in players:
        game.membership.set_status(lobby.code, p.id, PlayerStatus.READY)
    return lobby, players
