from flask_socketio import emit
from flask import current_app, request
from quizlive import socketio
from typing import Callable, Dict

NAMESPACE = '/ws'

# sid -> {session_id: unsubscribe}
_sid_subscriptions: Dict[str, Dict[int, Callable[[], None]]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _hub():
    return current_app.extensions['quizlive']['hub']


def _session_id(data):
    try:
        return int((data or {}).get('session_id'))
    except (TypeError, ValueError):
        return None


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # Release every hub subscription (push and poll) held by this socket
    for unsubscribe in _sid_subscriptions.pop(_get_sid(), {}).values():
        unsubscribe()


def handle_subscribe(data):
    session_id = _session_id(data)
    if session_id is None:
        emit('error', {'message': 'session_id is required', 'code': 'validation_error'})
        return
    sid = _get_sid()
    namespace = request.namespace

    def forward(event):
        socketio.emit(event.name, event.to_dict(), to=sid, namespace=namespace)

    subs = _sid_subscriptions.setdefault(sid, {})
    if session_id not in subs:
        subs[session_id] = _hub().subscribe(session_id, forward)
    emit('subscribed', {'session_id': session_id})


def handle_unsubscribe(data):
    session_id = _session_id(data)
    if session_id is None:
        emit('error', {'message': 'session_id is required', 'code': 'validation_error'})
        return
    unsubscribe = _sid_subscriptions.get(_get_sid(), {}).pop(session_id, None)
    if unsubscribe:
        unsubscribe()
    emit('unsubscribed', {'session_id': session_id})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('subscribe', handle_subscribe, namespace=namespace)
        socketio.on_event('unsubscribe', handle_unsubscribe, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
