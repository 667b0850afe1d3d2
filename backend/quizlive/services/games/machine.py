"""Lifecycle of a single game session.

    lobby -> question -> results -> question -> ... -> results -> finished

``GameSessionMachine`` is a pure transition function over ``SessionRecord``
values: it never reads a clock or a store, so callers pass ``now`` and the
participants it needs. Deadlines are computed here but enforced by the
driver; the machine only moves on explicit calls.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .errors import InvalidTransition, ValidationError
from .types import (
    FINISHED,
    LOBBY,
    QUESTION,
    RESULTS,
    GameSettings,
    ParticipantRecord,
    QuestionRecord,
    SessionRecord,
)


class GameSessionMachine:

    def create(self, quiz_id: int, settings: GameSettings, pin: str, now: datetime,
               host_id: Optional[str] = None) -> SessionRecord:
        if quiz_id is None:
            raise ValidationError('quiz_id is required')
        return SessionRecord(
            id=None,
            quiz_id=quiz_id,
            host_id=host_id,
            pin=pin,
            status=LOBBY,
            current_question_index=0,
            time_limit=settings.time_limit,
            speed_scoring=settings.speed_scoring,
            points_per_question=settings.points_per_question,
            auto_advance=settings.auto_advance,
            created_at=now,
        )

    def start(self, session: SessionRecord, now: datetime) -> SessionRecord:
        self._require(session, LOBBY, 'start')
        return replace(
            session,
            status=QUESTION,
            current_question_index=0,
            started_at=now,
            question_started_at=now,
        )

    def reveal(self, session: SessionRecord) -> SessionRecord:
        self._require(session, QUESTION, 'reveal results')
        return replace(session, status=RESULTS)

    def advance(self, session: SessionRecord, question_count: int,
                participants: Iterable[ParticipantRecord], now: datetime) -> SessionRecord:
        self._require(session, RESULTS, 'advance')
        next_index = session.current_question_index + 1
        if next_index >= question_count:
            return self._finish(session, participants, now)
        return replace(
            session,
            status=QUESTION,
            current_question_index=next_index,
            question_started_at=now,
        )

    def end(self, session: SessionRecord, participants: Iterable[ParticipantRecord],
            now: datetime) -> SessionRecord:
        """Host abort. Ending a finished session returns it unchanged."""
        if session.status == FINISHED:
            return session
        return self._finish(session, participants, now)

    def _finish(self, session, participants, now):
        winner = self.pick_winner(participants)
        return replace(
            session,
            status=FINISHED,
            ended_at=now,
            winner_id=winner.id if winner else None,
        )

    @staticmethod
    def pick_winner(participants: Iterable[ParticipantRecord]) -> Optional[ParticipantRecord]:
        """Highest total score; ties go to whoever joined first."""
        best = None
        for p in participants:
            if best is None or p.total_score > best.total_score:
                best = p
            elif p.total_score == best.total_score and _join_key(p) < _join_key(best):
                best = p
        return best

    @staticmethod
    def deadline(session: SessionRecord, question: QuestionRecord) -> Optional[datetime]:
        if session.status != QUESTION or session.question_started_at is None:
            return None
        return session.question_started_at + timedelta(seconds=effective_time_limit(session, question))

    @staticmethod
    def _require(session, expected, action):
        if session.status != expected:
            raise InvalidTransition(f"Cannot {action} while game is {session.status}")


def effective_time_limit(session: SessionRecord, question: QuestionRecord) -> int:
    if question is not None and question.time_limit_override:
        return question.time_limit_override
    return session.time_limit


def _join_key(participant):
    if participant.joined_at is None:
        return (1, 0.0, participant.id or 0)
    return (0, participant.joined_at.timestamp(), participant.id or 0)
