import threading
from datetime import datetime

import pytest
from flask_jwt_extended import create_access_token

from vms_api import create_app
from vms_api.extensions import db
from vms_api.models.shift import Shift, ShiftTask
from vms_api.services.assignment_engine import AssignmentManager


class FakeClock:
    """Callable clock for now_fn; tests move it with .set()."""

    def __init__(self, now=None):
        self.now = now or datetime(2025, 10, 6, 8, 0, 0)

    def set(self, now):
        self.now = now

    def __call__(self):
        return self.now


class RecordingNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def notify(self, user_id, type_, payload=None):
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append((user_id, type_, payload))


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    app = create_app({"TESTING": True})
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def file_app(tmp_path):
    """File-backed SQLite so several threads can hold their own connections."""
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'race.db'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False, "timeout": 15}},
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    """Service-level tests run inside one pushed app context."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def manager(clock, notifier):
    return AssignmentManager(daily_hours_limit=12, notifier=notifier, now_fn=clock, max_retries=3)


@pytest.fixture
def auth(app):
    def _headers(user_id, *roles):
        with app.app_context():
            token = create_access_token(identity=str(user_id), additional_claims={"roles": list(roles)})
        return {"Authorization": f"Bearer {token}"}
    return _headers


def make_shift(start=None, end=None, title="Shift", **kw):
    s = Shift(title=title, start_at=start, end_at=end, **kw)
    db.session.add(s)
    db.session.commit()
    return s


def make_task(shift, title="Task"):
    t = ShiftTask(shift_id=shift.id, title=title)
    db.session.add(t)
    db.session.commit()
    return t


def at(hour, minute=0, day=6):
    return datetime(2025, 10, day, hour, minute, 0)


def race(app, *jobs):
    """Run each job in its own thread and app context, all released at once."""
    barrier = threading.Barrier(len(jobs))
    outcomes = [None] * len(jobs)

    def runner(i, job):
        with app.app_context():
            barrier.wait()
            outcomes[i] = job()

    threads = [threading.Thread(target=runner, args=(i, job)) for i, job in enumerate(jobs)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes
