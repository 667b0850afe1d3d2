from flask import Blueprint, jsonify, request, current_app
import time

from quizlive.services.games.errors import GameError, ValidationError

games = Blueprint('games', __name__)

_last_controller_action: dict[str, float] = {}


def _coordinator():
    return current_app.extensions['quizlive']['coordinator']


def _optional_int(data, key):
    value = data.get(key)
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{key} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{key} must be an integer')


def _required_int(data, key):
    value = _optional_int(data, key)
    if value is None:
        raise ValidationError(f'{key} is required')
    return value


def _debounced(action, session_id):
    """Swallow host double-clicks inside CONTROLLER_DEBOUNCE_MS."""
    try:
        debounce_ms = int(current_app.config.get('CONTROLLER_DEBOUNCE_MS', 0))
    except (TypeError, ValueError):
        debounce_ms = 0
    if debounce_ms <= 0:
        return False
    key = f"{action}:{session_id}"
    now = time.time() * 1000.0
    last = _last_controller_action.get(key, 0)
    if now - last < debounce_ms:
        return True
    _last_controller_action[key] = now
    return False


def _forget_controller_actions(session_id):
    suffix = f":{session_id}"
    for key in [k for k in _last_controller_action if k.endswith(suffix)]:
        _last_controller_action.pop(key, None)


@games.errorhandler(GameError)
def handle_game_error(exc):
    current_app.logger.info(f"[error] {request.method} {request.path} {exc.code}: {exc}")
    return jsonify(exc.to_dict()), exc.http_status


@games.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    quiz_id = _required_int(data, 'quiz_id')
    settings = data.get('settings') or {}
    if not isinstance(settings, dict):
        raise ValidationError('settings must be an object')
    host_id = data.get('host_id')
    created = _coordinator().create_game(
        quiz_id,
        host_id=str(host_id) if host_id is not None else None,
        settings=settings,
    )
    return jsonify({
        'message': 'New game created!',
        'pin': created.pin,
        'session_id': created.session_id,
    }), 201


@games.route('/join', methods=['POST'])
def join_game():
    data = request.get_json(silent=True) or {}
    joined = _coordinator().join_game(
        str(data.get('pin') or ''),
        data.get('nickname'),
        data.get('avatar_base'),
        data.get('avatar_accessory'),
        user_id=str(data['user_id']) if data.get('user_id') is not None else None,
    )
    return jsonify({
        'participant_id': joined.participant_id,
        'session_id': joined.session_id,
    }), 201


@games.route('/<int:session_id>/leave', methods=['POST'])
def leave_game(session_id):
    data = request.get_json(silent=True) or {}
    _coordinator().leave_game(session_id, _required_int(data, 'participant_id'))
    return jsonify({'ok': True})


@games.route('/<int:session_id>/start', methods=['POST'])
def start_game(session_id):
    if _debounced('start', session_id):
        return jsonify({'message': 'debounced'}), 202
    session = _coordinator().start_game(session_id)
    return jsonify({'session': session.to_dict()})


@games.route('/<int:session_id>/reveal', methods=['POST'])
def reveal_results(session_id):
    if _debounced('reveal', session_id):
        return jsonify({'message': 'debounced'}), 202
    session = _coordinator().reveal_results(session_id)
    return jsonify({'session': session.to_dict()})


@games.route('/<int:session_id>/advance', methods=['POST'])
def advance_question(session_id):
    if _debounced('advance', session_id):
        return jsonify({'message': 'debounced'}), 202
    session = _coordinator().advance_or_end(session_id)
    if session.status == 'finished':
        _forget_controller_actions(session_id)
    return jsonify({'finished': session.status == 'finished', 'session': session.to_dict()})


@games.route('/<int:session_id>/end', methods=['POST'])
def end_game(session_id):
    session = _coordinator().end_game(session_id)
    _forget_controller_actions(session_id)
    return jsonify({'session': session.to_dict()})


@games.route('/<int:session_id>/answers', methods=['POST'])
def submit_answer(session_id):
    data = request.get_json(silent=True) or {}
    result = _coordinator().submit_answer(
        session_id,
        _required_int(data, 'participant_id'),
        option_id=_optional_int(data, 'option_id'),
        question_id=_optional_int(data, 'question_id'),
    )
    return jsonify({
        'is_correct': result.is_correct,
        'points_awarded': result.points_awarded,
        'new_streak': result.new_streak,
        'new_total_score': result.new_total_score,
        'time_bonus': result.time_bonus,
        'streak_bonus': result.streak_bonus,
        'response_time_ms': result.response_time_ms,
    }), 201


@games.route('/<int:session_id>/state', methods=['GET'])
def get_game_state(session_id):
    payload = _coordinator().get_state(session_id)
    payload['poll_interval'] = float(current_app.config.get('REALTIME_POLL_INTERVAL_SEC', 2))
    return jsonify(payload)


@games.route('/<int:session_id>/results', methods=['GET'])
def get_question_results(session_id):
    index = _optional_int(request.args, 'question_index')
    return jsonify(_coordinator().question_results(session_id, question_index=index).to_dict())
