from datetime import timezone

from sqlalchemy import text

from quizlive import db
from quizlive.services.games.types import (
    LOBBY,
    MULTIPLE_CHOICE,
    OptionRecord,
    ParticipantRecord,
    QuestionRecord,
    QuizRecord,
    ResponseRecord,
    SessionRecord,
)


def _aware(value):
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Quiz(db.Model):
    """Authored elsewhere; read-only while a game is live."""
    __tablename__ = 'quiz'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    # Creator defaults copied into each session's settings snapshot
    time_limit = db.Column(db.Integer, nullable=True)
    speed_scoring = db.Column(db.Boolean, nullable=True)
    points_per_question = db.Column(db.Integer, nullable=True)
    auto_advance = db.Column(db.Boolean, nullable=True)
    questions = db.relationship('Question', back_populates='quiz', order_by='Question.order_index')

    def to_record(self):
        return QuizRecord(
            id=self.id,
            title=self.title,
            time_limit=self.time_limit,
            speed_scoring=self.speed_scoring,
            points_per_question=self.points_per_question,
            auto_advance=self.auto_advance,
            questions=tuple(q.to_record() for q in self.questions),
        )


class Question(db.Model):
    __tablename__ = 'question'
    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'order_index', name='uq_question_quiz_order'),
    )
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False, default=MULTIPLE_CHOICE)
    question_text = db.Column(db.Text, nullable=False)
    order_index = db.Column(db.Integer, nullable=False)
    is_warmup = db.Column(db.Boolean, nullable=False, default=False)
    time_limit_override = db.Column(db.Integer, nullable=True)
    quiz = db.relationship('Quiz', back_populates='questions')
    options = db.relationship('QuestionOption', back_populates='question', order_by='QuestionOption.order_index')

    def to_record(self):
        return QuestionRecord(
            id=self.id,
            quiz_id=self.quiz_id,
            text=self.question_text,
            order_index=self.order_index,
            type=self.type,
            is_warmup=bool(self.is_warmup),
            time_limit_override=self.time_limit_override,
            options=tuple(o.to_record() for o in self.options),
        )


class QuestionOption(db.Model):
    __tablename__ = 'question_option'
    __table_args__ = (
        db.UniqueConstraint('question_id', 'order_index', name='uq_option_question_order'),
    )
    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False, index=True)
    option_text = db.Column(db.String(500), nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    order_index = db.Column(db.Integer, nullable=False)
    question = db.relationship('Question', back_populates='options')

    def to_record(self):
        return OptionRecord(
            id=self.id,
            question_id=self.question_id,
            text=self.option_text,
            is_correct=bool(self.is_correct),
            order_index=self.order_index,
        )


class GameSession(db.Model):
    __tablename__ = 'game_session'
    __table_args__ = (
        # A PIN is unique among sessions that have not finished yet
        db.Index(
            'uq_game_session_active_pin', 'pin', unique=True,
            sqlite_where=text("status != 'finished'"),
            postgresql_where=text("status != 'finished'"),
        ),
    )
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=False)
    host_id = db.Column(db.String(64), nullable=True)
    pin = db.Column(db.String(6), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=LOBBY)  # lobby, question, results, finished
    current_question_index = db.Column(db.Integer, nullable=False, default=0)
    question_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Settings snapshot, immutable after creation
    time_limit = db.Column(db.Integer, nullable=False)
    speed_scoring = db.Column(db.Boolean, nullable=False)
    points_per_question = db.Column(db.Integer, nullable=False)
    auto_advance = db.Column(db.Boolean, nullable=False)
    winner_id = db.Column(db.Integer, nullable=True)  # participant id
    version = db.Column(db.Integer, nullable=False, default=0)
    participants = db.relationship(
        'GameParticipant', back_populates='session', foreign_keys='GameParticipant.session_id',
        cascade='all, delete-orphan',
    )

    def to_record(self):
        return SessionRecord(
            id=self.id,
            quiz_id=self.quiz_id,
            host_id=self.host_id,
            pin=self.pin,
            status=self.status,
            current_question_index=self.current_question_index,
            question_started_at=_aware(self.question_started_at),
            started_at=_aware(self.started_at),
            ended_at=_aware(self.ended_at),
            created_at=_aware(self.created_at),
            time_limit=self.time_limit,
            speed_scoring=bool(self.speed_scoring),
            points_per_question=self.points_per_question,
            auto_advance=bool(self.auto_advance),
            winner_id=self.winner_id,
            version=self.version,
        )


class GameParticipant(db.Model):
    __tablename__ = 'game_participant'
    __table_args__ = (
        db.CheckConstraint('total_score >= 0', name='ck_participant_score_non_negative'),
        db.CheckConstraint('current_streak >= 0', name='ck_participant_streak_non_negative'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=True)
    nickname = db.Column(db.String(20), nullable=False)
    avatar_base = db.Column(db.String(32), nullable=False)
    avatar_accessory = db.Column(db.String(32), nullable=True)
    total_score = db.Column(db.Integer, nullable=False, default=0)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=0)
    session = db.relationship('GameSession', back_populates='participants', foreign_keys=[session_id])
    responses = db.relationship('QuestionResponse', back_populates='participant', cascade='all, delete-orphan')

    def to_record(self):
        return ParticipantRecord(
            id=self.id,
            session_id=self.session_id,
            user_id=self.user_id,
            nickname=self.nickname,
            avatar_base=self.avatar_base,
            avatar_accessory=self.avatar_accessory,
            total_score=self.total_score,
            current_streak=self.current_streak,
            joined_at=_aware(self.joined_at),
            version=self.version,
        )


class QuestionResponse(db.Model):
    __tablename__ = 'question_response'
    __table_args__ = (
        # First submission wins
        db.UniqueConstraint('participant_id', 'question_id', name='uq_response_participant_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    participant_id = db.Column(db.Integer, db.ForeignKey('game_participant.id'), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False, index=True)
    selected_option_id = db.Column(db.Integer, db.ForeignKey('question_option.id'), nullable=True)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    response_time_ms = db.Column(db.Integer, nullable=False, default=0)
    points_awarded = db.Column(db.Integer, nullable=False, default=0)
    answered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    participant = db.relationship('GameParticipant', back_populates='responses')

    def to_record(self):
        return ResponseRecord(
            id=self.id,
            session_id=self.session_id,
            participant_id=self.participant_id,
            question_id=self.question_id,
            selected_option_id=self.selected_option_id,
            is_correct=bool(self.is_correct),
            response_time_ms=self.response_time_ms,
            points_awarded=self.points_awarded,
            answered_at=_aware(self.answered_at),
        )
