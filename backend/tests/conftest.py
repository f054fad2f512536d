import os
import sys
from datetime import datetime, timedelta, timezone
import pytest

# Ensure the backend root (containing the `dailyrank` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from dailyrank import create_app, db


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    PLAYER_ID_HEADER = 'X-WX-OPENID'
    RANK_TOP_N = 100
    CORS_ORIGINS = '*'


class FakeClock:
    """Controllable UTC clock; each reading advances by ``step`` so
    successive submissions get distinct ``created_at`` values."""

    def __init__(self, start, step=timedelta(milliseconds=1)):
        self.now = start
        self.step = step

    def __call__(self):
        current = self.now
        self.now += self.step
        return current

    def set(self, value):
        self.now = value

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


# 2025-03-10 12:00 at UTC+8
NOON_UTC8 = datetime(2025, 3, 10, 4, 0, tzinfo=timezone.utc)


@pytest.fixture()
def clock():
    return FakeClock(NOON_UTC8)


@pytest.fixture()
def flask_app(clock):
    application = create_app(TestConfig)
    application.extensions['rank_clock'] = clock
    with application.app_context():
        # Ensure models are imported so tables are created
        import dailyrank.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def engine(flask_app):
    from dailyrank.services.ranking import build_engine
    return build_engine(flask_app)


@pytest.fixture()
def scheduler(flask_app):
    return flask_app.extensions['cleanup_scheduler']
