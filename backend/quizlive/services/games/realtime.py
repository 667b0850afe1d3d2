"""Change-event fan-out for live sessions.

Two delivery paths per session:

- push: ``publish`` hands every change event to the session's subscribers
  as soon as the coordinator commits it;
- poll: while a session has subscribers, a background loop re-reads the
  session and its participants every ``poll_interval`` seconds and
  delivers a full ``Snapshot``. Subscribers replace their local state with
  it, which masks any push event that got lost on the way.

``subscribe`` returns the function that releases the subscription; the
poll loop stops once the last subscriber of a session is gone.
"""

import contextlib
import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, List, Optional

from .types import ParticipantRecord, ResponseRecord, SessionRecord


class ChangeEvent:
    name: ClassVar[str] = 'change'
    session_id: int

    def payload(self) -> dict:
        raise NotImplementedError

    def to_dict(self) -> dict:
        data = self.payload()
        data['session_id'] = self.session_id
        return data


@dataclass(frozen=True)
class SessionUpdated(ChangeEvent):
    name: ClassVar[str] = 'session_updated'
    session: SessionRecord

    @property
    def session_id(self):
        return self.session.id

    def payload(self):
        return {'session': self.session.to_dict()}


@dataclass(frozen=True)
class ParticipantJoined(ChangeEvent):
    name: ClassVar[str] = 'participant_joined'
    participant: ParticipantRecord

    @property
    def session_id(self):
        return self.participant.session_id

    def payload(self):
        return {'participant': self.participant.to_dict()}


@dataclass(frozen=True)
class ParticipantUpdated(ChangeEvent):
    name: ClassVar[str] = 'participant_updated'
    participant: ParticipantRecord

    @property
    def session_id(self):
        return self.participant.session_id

    def payload(self):
        return {'participant': self.participant.to_dict()}


@dataclass(frozen=True)
class ParticipantLeft(ChangeEvent):
    name: ClassVar[str] = 'participant_left'
    session_id: int
    participant_id: int

    def payload(self):
        return {'participant_id': self.participant_id}


@dataclass(frozen=True)
class ResponseRecorded(ChangeEvent):
    name: ClassVar[str] = 'response_recorded'
    response: ResponseRecord

    @property
    def session_id(self):
        return self.response.session_id

    def payload(self):
        return {'response': self.response.to_dict()}


@dataclass(frozen=True)
class Snapshot(ChangeEvent):
    name: ClassVar[str] = 'snapshot'
    session: SessionRecord
    participants: tuple

    @property
    def session_id(self):
        return self.session.id

    def payload(self):
        return {
            'session': self.session.to_dict(),
            'participants': [p.to_dict() for p in self.participants],
        }


Subscriber = Callable[[ChangeEvent], None]


def _spawn_thread(fn, *args):
    thread = threading.Thread(target=fn, args=args, daemon=True)
    thread.start()
    return thread


class RealtimeHub:

    def __init__(self, store, poll_interval: float = 2.0, spawn=None, sleep=time.sleep,
                 context=contextlib.nullcontext, logger=None):
        self.store = store
        self.poll_interval = poll_interval
        self.spawn = spawn or _spawn_thread
        self.sleep = sleep
        # Factory for the context the poll loop runs in (an app context for SQL stores)
        self.context = context
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._subscribers: Dict[int, Dict[int, Subscriber]] = {}
        self._pollers: Dict[int, int] = {}

    def subscribe(self, session_id: int, on_event: Subscriber) -> Callable[[], None]:
        token = next(self._tokens)
        start_poller = False
        with self._lock:
            self._subscribers.setdefault(session_id, {})[token] = on_event
            if self.poll_interval and session_id not in self._pollers:
                self._pollers[session_id] = token
                start_poller = True
        self.logger.info(f"[realtime] subscribe session={session_id} token={token}")
        if start_poller:
            self.spawn(self._poll_loop, session_id, token)

        def unsubscribe():
            self._unsubscribe(session_id, token)
        return unsubscribe

    def _unsubscribe(self, session_id, token):
        with self._lock:
            subs = self._subscribers.get(session_id)
            if not subs or subs.pop(token, None) is None:
                return
            if not subs:
                self._subscribers.pop(session_id, None)
                self._pollers.pop(session_id, None)
        self.logger.info(f"[realtime] unsubscribe session={session_id} token={token}")

    def subscriber_count(self, session_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(session_id, {}))

    def is_polling(self, session_id: int) -> bool:
        with self._lock:
            return session_id in self._pollers

    def publish(self, event: ChangeEvent) -> None:
        self._deliver(event.session_id, event)

    def reconcile(self, session_id: int) -> Optional[Snapshot]:
        """Read the full session state and deliver it to the session's subscribers."""
        session = self.store.get_session(session_id)
        if session is None:
            return None
        snapshot = Snapshot(session, tuple(self.store.list_participants(session_id)))
        self._deliver(session_id, snapshot)
        return snapshot

    def _deliver(self, session_id, event):
        with self._lock:
            targets: List[Subscriber] = list(self._subscribers.get(session_id, {}).values())
        for on_event in targets:
            try:
                on_event(event)
            except Exception:
                # One broken connection must not starve the others
                self.logger.exception(f"[realtime] delivery failed session={session_id} event={event.name}")

    def _poll_loop(self, session_id, owner_token):
        while True:
            self.sleep(self.poll_interval)
            with self._lock:
                if self._pollers.get(session_id) != owner_token:
                    return
            try:
                with self.context():
                    self.reconcile(session_id)
            except Exception:
                self.logger.exception(f"[realtime] poll failed session={session_id}")
