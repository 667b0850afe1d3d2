import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Ensure the backend root (containing the `quizlive` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizlive import create_app, db, socketio
from quizlive.services.games.coordinator import GameCoordinator
from quizlive.services.games.realtime import RealtimeHub
from quizlive.services.games.store import MemorySessionStore
from quizlive.services.games.types import OptionRecord, QuestionRecord, QuizRecord


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REALTIME_POLL_INTERVAL_SEC = 0
    CONTROLLER_DEBOUNCE_MS = 0


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizlive.models  # noqa: F401
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
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def seeded_quiz(flask_app):
    """Two scored questions then a warmup, 20s limit, 1000 points."""
    from quizlive.seed import seed_demo_quiz
    quiz = seed_demo_quiz(
        title='API quiz',
        questions=[
            {'text': 'Q1', 'options': [('a', True), ('b', False), ('c', False), ('d', False)]},
            {'text': 'Q2', 'options': [('t', False), ('f', True)], 'type': 'true_false'},
            {'text': 'Warmup', 'is_warmup': True, 'options': [('x', True), ('y', False)]},
        ],
        time_limit=20,
        speed_scoring=True,
        points_per_question=1000,
        auto_advance=False,
    )
    return quiz.id


# ---- in-memory engine fixtures ----

class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


def build_quiz(quiz_id, questions, **settings):
    """questions: list of dicts with 'options' [(text, is_correct)], optional
    'is_warmup' and 'time_limit_override'. Question ids are quiz_id*100+n,
    option ids question_id*10+n (both 1-based)."""
    records = []
    for q_index, spec in enumerate(questions):
        question_id = quiz_id * 100 + q_index + 1
        options = tuple(
            OptionRecord(
                id=question_id * 10 + o_index + 1,
                question_id=question_id,
                text=text,
                is_correct=is_correct,
                order_index=o_index,
            )
            for o_index, (text, is_correct) in enumerate(spec['options'])
        )
        records.append(QuestionRecord(
            id=question_id,
            quiz_id=quiz_id,
            text=spec.get('text', f'Question {q_index + 1}'),
            order_index=q_index,
            is_warmup=spec.get('is_warmup', False),
            time_limit_override=spec.get('time_limit_override'),
            options=options,
        ))
    return QuizRecord(id=quiz_id, title=f'Quiz {quiz_id}', questions=tuple(records), **settings)


FOUR = [('a', True), ('b', False), ('c', False), ('d', False)]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    return MemorySessionStore()


@pytest.fixture()
def hub(store):
    return RealtimeHub(store, poll_interval=0)


@pytest.fixture()
def coordinator(store, hub, clock):
    return GameCoordinator(store, hub, clock=clock)


@pytest.fixture()
def add_quiz(store):
    def _add(quiz_id=1, questions=None, **settings):
        return store.add_quiz(build_quiz(quiz_id, questions or [{'options': FOUR}, {'options': FOUR}], **settings))
    return _add


@pytest.fixture()
def correct_option():
    def _correct(question_id):
        return question_id * 10 + 1
    return _correct


@pytest.fixture()
def wrong_option():
    def _wrong(question_id):
        return question_id * 10 + 2
    return _wrong
