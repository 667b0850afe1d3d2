import contextlib

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def _run_inline(fn, *args):
    return fn(*args)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    _init_game_services(flask_app)

    from quizlive.api.games import games
    # Mount game routes under /api to match frontend API client
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from quizlive.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from quizlive.seed import seed_demo_quiz
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            quiz = seed_demo_quiz()
            print(f'Database has been reset and seeded! Demo quiz id={quiz.id}')

    flask_app.cli.add_command(db_reset_command)

    return flask_app


def _init_game_services(flask_app):
    """Build the per-app store, hub, coordinator and driver."""
    from quizlive.services.games.coordinator import GameCoordinator
    from quizlive.services.games.realtime import RealtimeHub
    from quizlive.services.games.scheduler import GameDriver
    from quizlive.services.games.sql_store import SqlSessionStore
    from quizlive.services.games.types import GameSettings

    cfg = flask_app.config
    testing = cfg.get('TESTING', False)
    # Tests drive timers synchronously; the server runs them as background tasks
    spawn = _run_inline if testing else socketio.start_background_task
    sleep = (lambda _seconds: None) if testing else socketio.sleep
    timer_context = contextlib.nullcontext if testing else flask_app.app_context

    store = SqlSessionStore()
    hub = RealtimeHub(
        store,
        poll_interval=float(cfg.get('REALTIME_POLL_INTERVAL_SEC', 2)),
        spawn=socketio.start_background_task,
        sleep=socketio.sleep,
        context=flask_app.app_context,
        logger=flask_app.logger,
    )
    coordinator = GameCoordinator(
        store,
        hub,
        logger=flask_app.logger,
        defaults=GameSettings(
            time_limit=int(cfg.get('DEFAULT_TIME_LIMIT_SEC', 20)),
            speed_scoring=bool(cfg.get('DEFAULT_SPEED_SCORING', True)),
            points_per_question=int(cfg.get('DEFAULT_POINTS_PER_QUESTION', 1000)),
            auto_advance=bool(cfg.get('DEFAULT_AUTO_ADVANCE', False)),
        ),
        pin_max_attempts=int(cfg.get('PIN_MAX_ATTEMPTS', 10)),
        nickname_max_length=int(cfg.get('NICKNAME_MAX_LENGTH', 20)),
        record_missed_answers=bool(cfg.get('RECORD_MISSED_ANSWERS', True)),
    )
    coordinator.driver = GameDriver(
        coordinator,
        spawn=spawn,
        sleep=sleep,
        context=timer_context,
        logger=flask_app.logger,
        auto_reveal=bool(cfg.get('AUTO_REVEAL', True)),
        results_duration=int(cfg.get('RESULTS_DURATION_SEC', 5)),
        enabled=(not testing) or bool(cfg.get('ENABLE_SCHEDULER_IN_TESTS')),
    )
    flask_app.extensions['quizlive'] = {
        'store': store,
        'hub': hub,
        'coordinator': coordinator,
    }
