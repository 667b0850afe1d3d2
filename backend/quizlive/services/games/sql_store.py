"""SessionStore backed by Flask-SQLAlchemy.

Must be used inside an application context. Conditional writes are single
UPDATE ... WHERE version = :expected statements, so a lost race shows up as
a zero rowcount rather than an overwrite. Response uniqueness is the
``uq_response_participant_question`` constraint.
"""

import functools

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from quizlive import db
from quizlive.models import (
    GameParticipant,
    GameSession,
    Quiz,
    QuestionResponse,
)
from .errors import (
    DuplicateResponse,
    PinCollision,
    SessionMoved,
    StaleWrite,
    StoreUnavailable,
)
from .store import SessionStore
from .types import FINISHED, LOBBY


def _guarded(fn):
    """Roll back and report connectivity failures as StoreUnavailable."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            db.session.rollback()
            raise StoreUnavailable(f"Game store unavailable: {exc.orig or exc}") from exc
    return wrapper


class SqlSessionStore(SessionStore):

    @_guarded
    def get_quiz(self, quiz_id):
        quiz = db.session.get(Quiz, quiz_id)
        return quiz.to_record() if quiz else None

    @_guarded
    def insert_session(self, session):
        row = GameSession(
            quiz_id=session.quiz_id,
            host_id=session.host_id,
            pin=session.pin,
            status=session.status,
            current_question_index=session.current_question_index,
            question_started_at=session.question_started_at,
            started_at=session.started_at,
            ended_at=session.ended_at,
            created_at=session.created_at,
            time_limit=session.time_limit,
            speed_scoring=session.speed_scoring,
            points_per_question=session.points_per_question,
            auto_advance=session.auto_advance,
            version=0,
        )
        db.session.add(row)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise PinCollision(session.pin) from exc
        return row.to_record()

    @_guarded
    def get_session(self, session_id):
        row = db.session.get(GameSession, session_id, populate_existing=True)
        return row.to_record() if row else None

    @_guarded
    def get_session_by_pin(self, pin):
        row = (
            GameSession.query
            .filter(GameSession.pin == pin, GameSession.status != FINISHED)
            .order_by(GameSession.id.desc())
            .first()
        )
        return row.to_record() if row else None

    @_guarded
    def update_session(self, session, expected_status, expected_version):
        count = (
            GameSession.query
            .filter_by(id=session.id, status=expected_status, version=expected_version)
            .update({
                'status': session.status,
                'current_question_index': session.current_question_index,
                'question_started_at': session.question_started_at,
                'started_at': session.started_at,
                'ended_at': session.ended_at,
                'winner_id': session.winner_id,
                'version': expected_version + 1,
            }, synchronize_session=False)
        )
        if count != 1:
            db.session.rollback()
            raise StaleWrite(f"session {session.id}")
        db.session.commit()
        return db.session.get(GameSession, session.id, populate_existing=True).to_record()

    @_guarded
    def insert_participant(self, participant):
        # Row lock on the session: a concurrent start either commits first or waits
        in_lobby = (
            GameSession.query
            .filter_by(id=participant.session_id, status=LOBBY)
            .update({'version': GameSession.version}, synchronize_session=False)
        )
        if in_lobby != 1:
            db.session.rollback()
            raise SessionMoved(f"session {participant.session_id}")
        row = GameParticipant(
            session_id=participant.session_id,
            user_id=participant.user_id,
            nickname=participant.nickname,
            avatar_base=participant.avatar_base,
            avatar_accessory=participant.avatar_accessory,
            total_score=0,
            current_streak=0,
            joined_at=participant.joined_at,
            version=0,
        )
        db.session.add(row)
        db.session.commit()
        return row.to_record()

    @_guarded
    def get_participant(self, participant_id):
        row = db.session.get(GameParticipant, participant_id, populate_existing=True)
        return row.to_record() if row else None

    @_guarded
    def list_participants(self, session_id):
        rows = (
            GameParticipant.query
            .filter_by(session_id=session_id)
            .order_by(GameParticipant.joined_at, GameParticipant.id)
            .populate_existing()
            .all()
        )
        return [r.to_record() for r in rows]

    @_guarded
    def delete_participant(self, participant_id):
        count = GameParticipant.query.filter_by(id=participant_id).delete(synchronize_session=False)
        db.session.commit()
        return count > 0

    @_guarded
    def record_response(self, response, new_streak, participant_version, session_version=None):
        if session_version is not None:
            # No-op write: takes the session row lock so a concurrent
            # transition either commits first (and we see it) or waits.
            moved = (
                GameSession.query
                .filter_by(id=response.session_id, version=session_version)
                .update({'version': GameSession.version}, synchronize_session=False)
            )
            if moved != 1:
                db.session.rollback()
                raise SessionMoved(f"session {response.session_id}")

        row = QuestionResponse(
            session_id=response.session_id,
            participant_id=response.participant_id,
            question_id=response.question_id,
            selected_option_id=response.selected_option_id,
            is_correct=response.is_correct,
            response_time_ms=response.response_time_ms,
            points_awarded=response.points_awarded,
            answered_at=response.answered_at,
        )
        db.session.add(row)
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            raise DuplicateResponse(
                f"participant={response.participant_id} question={response.question_id}"
            ) from exc

        updated = (
            GameParticipant.query
            .filter_by(id=response.participant_id, version=participant_version)
            .update({
                'total_score': GameParticipant.total_score + response.points_awarded,
                'current_streak': new_streak,
                'version': participant_version + 1,
            }, synchronize_session=False)
        )
        if updated != 1:
            db.session.rollback()
            raise StaleWrite(f"participant {response.participant_id}")
        db.session.commit()
        participant = db.session.get(GameParticipant, response.participant_id, populate_existing=True)
        return row.to_record(), participant.to_record()

    @_guarded
    def list_responses(self, session_id, question_id=None):
        query = QuestionResponse.query.filter_by(session_id=session_id)
        if question_id is not None:
            query = query.filter_by(question_id=question_id)
        return [r.to_record() for r in query.order_by(QuestionResponse.id).all()]
