"""Persistence boundary for live games.

``SessionStore`` lists the atomic operations the coordinator relies on.
Writes that race are conditioned on a row ``version`` (compare-and-swap)
and report a lost race with ``StaleWrite`` instead of overwriting. The
response write is one unit: the uniqueness check on (participant,
question), the insert, and the participant's score/streak update either
all happen or none do.

``MemorySessionStore`` is the reference implementation used by the engine
tests; ``SqlSessionStore`` (sql_store.py) backs the running service.
"""

import abc
import itertools
import threading
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from .errors import DuplicateResponse, PinCollision, SessionMoved, StaleWrite
from .types import (
    FINISHED,
    LOBBY,
    ParticipantRecord,
    QuizRecord,
    ResponseRecord,
    SessionRecord,
)


class SessionStore(abc.ABC):

    @abc.abstractmethod
    def get_quiz(self, quiz_id) -> Optional[QuizRecord]:
        """Quiz with its ordered questions and options, or None."""

    @abc.abstractmethod
    def insert_session(self, session: SessionRecord) -> SessionRecord:
        """Persist a new session. Raises PinCollision if an active session holds the PIN."""

    @abc.abstractmethod
    def get_session(self, session_id) -> Optional[SessionRecord]:
        ...

    @abc.abstractmethod
    def get_session_by_pin(self, pin: str) -> Optional[SessionRecord]:
        """Only non-finished sessions match; finished sessions release their PIN."""

    @abc.abstractmethod
    def update_session(self, session: SessionRecord, expected_status: str,
                       expected_version: int) -> SessionRecord:
        """Write ``session`` if the stored row still has the expected status and
        version; bumps the version. Raises StaleWrite otherwise."""

    @abc.abstractmethod
    def insert_participant(self, participant: ParticipantRecord) -> ParticipantRecord:
        """Persist a new participant. Raises SessionMoved unless the session is
        still in the lobby."""

    @abc.abstractmethod
    def get_participant(self, participant_id) -> Optional[ParticipantRecord]:
        ...

    @abc.abstractmethod
    def list_participants(self, session_id) -> List[ParticipantRecord]:
        """Participants of a session in join order."""

    @abc.abstractmethod
    def delete_participant(self, participant_id) -> bool:
        ...

    @abc.abstractmethod
    def record_response(self, response: ResponseRecord, new_streak: int,
                        participant_version: int,
                        session_version: Optional[int] = None
                        ) -> Tuple[ResponseRecord, ParticipantRecord]:
        """Insert the response and apply its points/streak to the participant.

        Raises DuplicateResponse if the participant already has a response
        for the question, StaleWrite if the participant row moved past
        ``participant_version``, and SessionMoved if ``session_version`` is
        given and the session row no longer has it. Nothing is written when
        any of these is raised.
        """

    @abc.abstractmethod
    def list_responses(self, session_id, question_id=None) -> List[ResponseRecord]:
        ...


class MemorySessionStore(SessionStore):
    """Thread-safe in-process store. One lock serializes every write."""

    def __init__(self):
        self._lock = threading.RLock()
        self._ids = {name: itertools.count(1) for name in ('session', 'participant', 'response')}
        self._quizzes: Dict[int, QuizRecord] = {}
        self._sessions: Dict[int, SessionRecord] = {}
        self._participants: Dict[int, ParticipantRecord] = {}
        self._responses: Dict[int, ResponseRecord] = {}
        self._answered: Dict[Tuple[int, int], int] = {}

    def add_quiz(self, quiz: QuizRecord) -> QuizRecord:
        with self._lock:
            self._quizzes[quiz.id] = quiz
        return quiz

    def get_quiz(self, quiz_id):
        return self._quizzes.get(quiz_id)

    def insert_session(self, session):
        with self._lock:
            if self._active_by_pin(session.pin) is not None:
                raise PinCollision(session.pin)
            saved = replace(session, id=next(self._ids['session']), version=0)
            self._sessions[saved.id] = saved
            return saved

    def get_session(self, session_id):
        return self._sessions.get(session_id)

    def get_session_by_pin(self, pin):
        with self._lock:
            return self._active_by_pin(pin)

    def _active_by_pin(self, pin):
        for session in self._sessions.values():
            if session.pin == pin and session.status != FINISHED:
                return session
        return None

    def update_session(self, session, expected_status, expected_version):
        with self._lock:
            current = self._sessions.get(session.id)
            if current is None or current.status != expected_status or current.version != expected_version:
                raise StaleWrite(f"session {session.id}")
            saved = replace(session, version=expected_version + 1)
            self._sessions[saved.id] = saved
            return saved

    def insert_participant(self, participant):
        with self._lock:
            session = self._sessions.get(participant.session_id)
            if session is None or session.status != LOBBY:
                raise SessionMoved(f"session {participant.session_id}")
            saved = replace(participant, id=next(self._ids['participant']), version=0)
            self._participants[saved.id] = saved
            return saved

    def get_participant(self, participant_id):
        return self._participants.get(participant_id)

    def list_participants(self, session_id):
        with self._lock:
            rows = [p for p in self._participants.values() if p.session_id == session_id]
        return sorted(rows, key=lambda p: (p.joined_at is None, p.joined_at, p.id))

    def delete_participant(self, participant_id):
        with self._lock:
            return self._participants.pop(participant_id, None) is not None

    def record_response(self, response, new_streak, participant_version, session_version=None):
        with self._lock:
            key = (response.participant_id, response.question_id)
            if key in self._answered:
                raise DuplicateResponse(f"participant={key[0]} question={key[1]}")
            if session_version is not None:
                session = self._sessions.get(response.session_id)
                if session is None or session.version != session_version:
                    raise SessionMoved(f"session {response.session_id}")
            participant = self._participants.get(response.participant_id)
            if participant is None or participant.version != participant_version:
                raise StaleWrite(f"participant {response.participant_id}")

            saved = replace(response, id=next(self._ids['response']))
            self._responses[saved.id] = saved
            self._answered[key] = saved.id
            updated = replace(
                participant,
                total_score=participant.total_score + saved.points_awarded,
                current_streak=new_streak,
                version=participant.version + 1,
            )
            self._participants[updated.id] = updated
            return saved, updated

    def list_responses(self, session_id, question_id=None):
        with self._lock:
            rows = [
                r for r in self._responses.values()
                if r.session_id == session_id and (question_id is None or r.question_id == question_id)
            ]
        return sorted(rows, key=lambda r: r.id)
