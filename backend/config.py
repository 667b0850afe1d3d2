import os


def _flag(name, default):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///quizlive.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Settings snapshot defaults when neither the request nor the quiz sets them
    DEFAULT_TIME_LIMIT_SEC = int(os.environ.get('DEFAULT_TIME_LIMIT_SEC', '20'))
    DEFAULT_SPEED_SCORING = _flag('DEFAULT_SPEED_SCORING', 'true')
    DEFAULT_POINTS_PER_QUESTION = int(os.environ.get('DEFAULT_POINTS_PER_QUESTION', '1000'))
    DEFAULT_AUTO_ADVANCE = _flag('DEFAULT_AUTO_ADVANCE', 'false')
    # PIN allocation retries before giving up
    PIN_MAX_ATTEMPTS = int(os.environ.get('PIN_MAX_ATTEMPTS', '10'))
    NICKNAME_MAX_LENGTH = int(os.environ.get('NICKNAME_MAX_LENGTH', '20'))
    # Reconciliation snapshot cadence (sec). 0 disables the background poll.
    REALTIME_POLL_INTERVAL_SEC = float(os.environ.get('REALTIME_POLL_INTERVAL_SEC', '2'))
    # Timers: reveal at the question deadline, hold results before auto-advance
    AUTO_REVEAL = _flag('AUTO_REVEAL', 'true')
    RESULTS_DURATION_SEC = int(os.environ.get('RESULTS_DURATION_SEC', '5'))
    # On reveal, record a 'no answer' response for everyone who stayed silent
    RECORD_MISSED_ANSWERS = _flag('RECORD_MISSED_ANSWERS', 'true')
    # Optional: debounce host transition requests (ms). 0 disables.
    CONTROLLER_DEBOUNCE_MS = int(os.environ.get('CONTROLLER_DEBOUNCE_MS', '0'))
