import os
import random
import tempfile

# Point the app at a throwaway database and an empty quiz dir (built-in sample bank)
# before anything imports db/config.
_TMP = tempfile.mkdtemp(prefix="quiz-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["QUIZ_DATA_DIR"] = os.path.join(_TMP, "quizzes")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import db  # noqa: E402
import models  # noqa: E402,F401
from engine.session import SessionEngine  # noqa: E402
from engine.store import SnapshotStore  # noqa: E402
from engine.timer import ManualScheduler  # noqa: E402

FIXED_NOW_MS = 1_700_000_000_000


@pytest.fixture(scope="session", autouse=True)
def _app_db():
    db.init_db()
    yield


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    db.Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SnapshotStore(session_factory, now_ms=lambda: FIXED_NOW_MS)


@pytest.fixture
def sched():
    return ManualScheduler()


@pytest.fixture
def make_engine(store, sched):
    def _make(**kwargs):
        kwargs.setdefault("rng", random.Random(7))
        return SessionEngine(store, scheduler=sched, clock=sched, **kwargs)

    return _make


def make_questions(n, *, prefix="q", category=None):
    """n single-choice questions whose correct answer is "A"."""
    return [
        {
            "id": f"{prefix}{i}",
            "type": "single-choice",
            "text": f"Question {i}",
            "options": ["A", "B", "C"],
            "correctAnswer": "A",
            "category": category or {"main": "General", "specific": [f"Topic {i % 2}"]},
        }
        for i in range(n)
    ]
