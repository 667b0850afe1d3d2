from quizlive import db
from quizlive.models import GameParticipant, GameSession, QuestionOption


def _create(client, quiz_id, **settings):
    resp = client.post('/api/games/create', json={'quiz_id': quiz_id, 'host_id': 'host-1', 'settings': settings})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def _join(client, pin, nickname, **extra):
    body = {'pin': pin, 'nickname': nickname, 'avatar_base': 'cat'}
    body.update(extra)
    return client.post('/api/games/join', json=body)


def _state(client, session_id):
    resp = client.get(f'/api/games/{session_id}/state')
    assert resp.status_code == 200
    return resp.get_json()


def _options(question_id):
    options = QuestionOption.query.filter_by(question_id=question_id).order_by(QuestionOption.order_index).all()
    correct = next(o.id for o in options if o.is_correct)
    wrong = next(o.id for o in options if not o.is_correct)
    return correct, wrong


def test_create_game_returns_pin(client, seeded_quiz):
    data = _create(client, seeded_quiz)
    assert data['message'] == 'New game created!'
    assert len(data['pin']) == 6 and data['pin'].isdigit()
    session = db.session.get(GameSession, data['session_id'])
    assert session.status == 'lobby'
    assert session.host_id == 'host-1'
    assert session.time_limit == 20


def test_create_game_errors(client, seeded_quiz):
    resp = client.post('/api/games/create', json={})
    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'validation_error'

    resp = client.post('/api/games/create', json={'quiz_id': 9999})
    assert resp.status_code == 404
    assert resp.get_json()['code'] == 'quiz_not_found'

    resp = client.post('/api/games/create', json={'quiz_id': seeded_quiz, 'settings': {'time_limit': -1}})
    assert resp.status_code == 400


def test_join_and_leave(client, seeded_quiz):
    game = _create(client, seeded_quiz)
    resp = _join(client, game['pin'], 'Alice', avatar_accessory='hat', user_id=42)
    assert resp.status_code == 201
    participant_id = resp.get_json()['participant_id']
    assert resp.get_json()['session_id'] == game['session_id']
    row = db.session.get(GameParticipant, participant_id)
    assert (row.nickname, row.avatar_accessory, row.user_id) == ('Alice', 'hat', '42')

    resp = client.post(f"/api/games/{game['session_id']}/leave", json={'participant_id': participant_id})
    assert resp.status_code == 200
    assert db.session.get(GameParticipant, participant_id) is None


def test_join_errors(client, seeded_quiz):
    game = _create(client, seeded_quiz)
    assert _join(client, 'abc', 'Alice').status_code == 400
    assert _join(client, game['pin'], 'x' * 30).status_code == 400
    resp = client.post('/api/games/join', json={'pin': game['pin'], 'nickname': 'Bob'})
    assert resp.status_code == 400

    client.post(f"/api/games/{game['session_id']}/start")
    resp = _join(client, game['pin'], 'Late')
    assert resp.status_code == 403
    assert resp.get_json()['code'] == 'session_not_joinable'


def test_transition_errors(client, seeded_quiz):
    game = _create(client, seeded_quiz)
    sid = game['session_id']
    assert client.post('/api/games/999/start').status_code == 404
    resp = client.post(f'/api/games/{sid}/advance')
    assert resp.status_code == 409
    assert resp.get_json()['code'] == 'invalid_transition'

    assert client.post(f'/api/games/{sid}/start').status_code == 200
    assert client.post(f'/api/games/{sid}/start').status_code == 409


def test_answer_errors(client, seeded_quiz):
    game = _create(client, seeded_quiz)
    sid = game['session_id']
    pid = _join(client, game['pin'], 'Alice').get_json()['participant_id']

    resp = client.post(f'/api/games/{sid}/answers', json={'participant_id': pid, 'option_id': 1})
    assert resp.status_code == 409
    assert resp.get_json()['code'] == 'question_closed'

    client.post(f'/api/games/{sid}/start')
    question_id = _state(client, sid)['current_question']['id']
    correct, _ = _options(question_id)
    assert client.post(f'/api/games/{sid}/answers', json={'option_id': correct}).status_code == 400
    resp = client.post(f'/api/games/{sid}/answers', json={'participant_id': pid, 'option_id': 99999})
    assert resp.get_json()['code'] == 'invalid_option'

    first = client.post(f'/api/games/{sid}/answers', json={'participant_id': pid, 'option_id': correct})
    assert first.status_code == 201
    again = client.post(f'/api/games/{sid}/answers', json={'participant_id': pid, 'option_id': correct})
    assert again.status_code == 409
    assert again.get_json()['code'] == 'already_answered'
    assert db.session.get(GameParticipant, pid).total_score == first.get_json()['points_awarded']


def test_full_game_over_http(client, seeded_quiz):
    game = _create(client, seeded_quiz)
    sid = game['session_id']
    alice = _join(client, game['pin'], 'Alice').get_json()['participant_id']
    bob = _join(client, game['pin'], 'Bob').get_json()['participant_id']

    started = client.post(f'/api/games/{sid}/start').get_json()['session']
    assert started['status'] == 'question'

    # Q1: both right
    state = _state(client, sid)
    assert state['poll_interval'] == 0
    assert all('is_correct' not in o for o in state['current_question']['options'])
    q1 = state['current_question']['id']
    correct, wrong = _options(q1)
    a1 = client.post(f'/api/games/{sid}/answers',
                     json={'participant_id': alice, 'option_id': correct, 'question_id': q1}).get_json()
    b1 = client.post(f'/api/games/{sid}/answers',
                     json={'participant_id': bob, 'option_id': correct}).get_json()
    assert a1['is_correct'] and b1['is_correct']
    assert 500 <= a1['points_awarded'] <= 1000
    assert a1['new_streak'] == 1

    revealed = client.post(f'/api/games/{sid}/reveal').get_json()['session']
    assert revealed['status'] == 'results'
    results = client.get(f'/api/games/{sid}/results').get_json()
    assert results['correct_option_id'] == correct
    assert results['response_count'] == 2

    # Q2: Alice right, Bob silent
    advanced = client.post(f'/api/games/{sid}/advance').get_json()
    assert advanced['finished'] is False
    assert advanced['session']['current_question_index'] == 1
    q2 = _state(client, sid)['current_question']['id']
    correct, _ = _options(q2)
    a2 = client.post(f'/api/games/{sid}/answers', json={'participant_id': alice, 'option_id': correct}).get_json()
    assert a2['streak_bonus'] == 100
    assert a2['new_total_score'] == a1['points_awarded'] + a2['points_awarded']
    client.post(f'/api/games/{sid}/reveal')
    assert db.session.get(GameParticipant, bob).current_streak == 0

    # Q3: warmup, no points
    client.post(f'/api/games/{sid}/advance')
    q3 = _state(client, sid)['current_question']
    assert q3['is_warmup'] is True
    correct, _ = _options(q3['id'])
    a3 = client.post(f'/api/games/{sid}/answers', json={'participant_id': alice, 'option_id': correct}).get_json()
    assert (a3['points_awarded'], a3['new_streak']) == (0, 2)
    client.post(f'/api/games/{sid}/reveal')

    final = client.post(f'/api/games/{sid}/advance').get_json()
    assert final['finished'] is True
    assert final['session']['status'] == 'finished'
    assert final['session']['winner_id'] == alice

    state = _state(client, sid)
    assert [p['nickname'] for p in state['participants']] == ['Alice', 'Bob']
    assert state['participants'][0]['total_score'] == a2['new_total_score']

    # the PIN is free again once the game is over
    assert _join(client, game['pin'], 'Carol').status_code == 403


def test_end_game_and_repeat(client, seeded_quiz):
    game = _create(client, seeded_quiz)
    sid = game['session_id']
    _join(client, game['pin'], 'Alice')
    client.post(f'/api/games/{sid}/start')
    first = client.post(f'/api/games/{sid}/end')
    assert first.status_code == 200
    assert first.get_json()['session']['status'] == 'finished'
    second = client.post(f'/api/games/{sid}/end')
    assert second.status_code == 200
    assert second.get_json()['session']['version'] == first.get_json()['session']['version']


def test_results_unknown_index(client, seeded_quiz):
    game = _create(client, seeded_quiz)
    resp = client.get(f"/api/games/{game['session_id']}/results?question_index=12")
    assert resp.status_code == 400


def test_debounce_entries_are_dropped_when_game_ends(flask_app, client, seeded_quiz):
    from quizlive.api.games import _last_controller_action
    flask_app.config['CONTROLLER_DEBOUNCE_MS'] = 60000
    sid = _create(client, seeded_quiz)['session_id']

    assert client.post(f'/api/games/{sid}/start').status_code == 200
    repeat = client.post(f'/api/games/{sid}/start')
    assert repeat.status_code == 202
    assert repeat.get_json()['message'] == 'debounced'
    assert f'start:{sid}' in _last_controller_action

    assert client.post(f'/api/games/{sid}/end').status_code == 200
    assert not any(key.endswith(f':{sid}') for key in _last_controller_action)
