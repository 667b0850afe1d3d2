"""GameCoordinator: the operations host and player clients invoke.

Each operation either returns its result or raises a ``GameError``.
Session transitions go through ``GameSessionMachine`` and are written
with a compare-and-swap on (status, version); answers are written with
the store's atomic ``record_response``. Every committed change is
published on the ``RealtimeHub`` and handed to the driver, which owns the
timers.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone

from .errors import (
    AlreadyAnswered,
    DuplicateResponse,
    InvalidOption,
    InvalidTransition,
    ParticipantNotFound,
    PinCollision,
    PinExhausted,
    QuestionClosed,
    QuizNotFound,
    SessionMoved,
    SessionNotFound,
    SessionNotJoinable,
    StaleWrite,
    StoreUnavailable,
    ValidationError,
)
from .machine import GameSessionMachine, effective_time_limit
from .pins import clean_pin, format_pin, generate_pin, is_valid_pin
from .realtime import (
    ParticipantJoined,
    ParticipantLeft,
    ParticipantUpdated,
    ResponseRecorded,
    SessionUpdated,
)
from .scoring import score
from .types import (
    FINISHED,
    LOBBY,
    QUESTION,
    RESULTS,
    GameSettings,
    ParticipantRecord,
    QuestionTally,
    ResponseRecord,
)

DEFAULT_SETTINGS = GameSettings(time_limit=20, speed_scoring=True, points_per_question=1000, auto_advance=False)
MAX_TIME_LIMIT_SEC = 3600


@dataclass(frozen=True)
class CreatedGame:
    pin: str
    session_id: int


@dataclass(frozen=True)
class JoinedGame:
    participant_id: int
    session_id: int


@dataclass(frozen=True)
class AnswerResult:
    is_correct: bool
    points_awarded: int
    new_streak: int
    new_total_score: int
    time_bonus: int = 0
    streak_bonus: int = 0
    response_time_ms: int = 0


def utcnow():
    return datetime.now(timezone.utc)


class GameCoordinator:
    TRANSITION_ATTEMPTS = 3
    ANSWER_ATTEMPTS = 3

    def __init__(self, store, hub, machine=None, clock=utcnow, rng=None, logger=None,
                 defaults: GameSettings = DEFAULT_SETTINGS, pin_max_attempts: int = 10,
                 nickname_max_length: int = 20, record_missed_answers: bool = True):
        self.store = store
        self.hub = hub
        self.machine = machine or GameSessionMachine()
        self.clock = clock
        self.rng = rng or random.Random()
        self.logger = logger or logging.getLogger(__name__)
        self.defaults = defaults
        self.pin_max_attempts = pin_max_attempts
        self.nickname_max_length = nickname_max_length
        self.record_missed_answers = record_missed_answers
        # Set by the app factory; schedules deadline reveals and auto-advance
        self.driver = None

    # ---- lobby ----

    def create_game(self, quiz_id, host_id=None, settings=None) -> CreatedGame:
        quiz = self.store.get_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFound(f"Quiz {quiz_id} not found")
        if not quiz.questions:
            raise ValidationError('Quiz has no questions')
        resolved = self._resolve_settings(quiz, settings or {})

        for attempt in range(1, self.pin_max_attempts + 1):
            pin = generate_pin(self.rng)
            draft = self.machine.create(quiz.id, resolved, pin, self.clock(), host_id=host_id)
            try:
                session = self.store.insert_session(draft)
            except PinCollision:
                self.logger.info(f"[create] pin collision attempt={attempt} pin={pin}")
                continue
            self.logger.info(
                f"[create] session={session.id} pin={pin} quiz={quiz.id} questions={len(quiz.questions)} "
                f"time_limit={resolved.time_limit} speed={resolved.speed_scoring} auto_advance={resolved.auto_advance}"
            )
            return CreatedGame(pin=pin, session_id=session.id)
        raise PinExhausted(f"No free PIN after {self.pin_max_attempts} attempts")

    def _resolve_settings(self, quiz, overrides) -> GameSettings:
        """Request settings beat the quiz's stored defaults, which beat the app defaults."""
        def pick(key, quiz_value, default):
            value = overrides.get(key)
            if value is None:
                value = quiz_value
            return default if value is None else value

        time_limit = pick('time_limit', quiz.time_limit, self.defaults.time_limit)
        speed_scoring = pick('speed_scoring', quiz.speed_scoring, self.defaults.speed_scoring)
        points = pick('points_per_question', quiz.points_per_question, self.defaults.points_per_question)
        auto_advance = pick('auto_advance', quiz.auto_advance, self.defaults.auto_advance)

        if isinstance(time_limit, bool) or not isinstance(time_limit, int) or not 1 <= time_limit <= MAX_TIME_LIMIT_SEC:
            raise ValidationError(f"time_limit must be an integer between 1 and {MAX_TIME_LIMIT_SEC}")
        if isinstance(points, bool) or not isinstance(points, int) or points < 1:
            raise ValidationError('points_per_question must be a positive integer')
        if not isinstance(speed_scoring, bool):
            raise ValidationError('speed_scoring must be a boolean')
        if not isinstance(auto_advance, bool):
            raise ValidationError('auto_advance must be a boolean')
        return GameSettings(time_limit, speed_scoring, points, auto_advance)

    def join_game(self, pin, nickname, avatar_base, avatar_accessory=None, user_id=None) -> JoinedGame:
        if not is_valid_pin(pin):
            raise ValidationError('Game PIN must be 6 digits')
        nickname = (nickname or '').strip()
        if not 1 <= len(nickname) <= self.nickname_max_length:
            raise ValidationError(f"Nickname must be 1-{self.nickname_max_length} characters")
        if not avatar_base:
            raise ValidationError('avatar_base is required')
        if avatar_accessory in ('', 'none'):
            avatar_accessory = None

        pin = clean_pin(pin)
        session = self.store.get_session_by_pin(pin)
        if session is None:
            raise SessionNotJoinable('Game not found')
        if session.status != LOBBY:
            raise SessionNotJoinable('Game already started')

        try:
            participant = self.store.insert_participant(ParticipantRecord(
                id=None,
                session_id=session.id,
                user_id=user_id,
                nickname=nickname,
                avatar_base=avatar_base,
                avatar_accessory=avatar_accessory,
                joined_at=self.clock(),
            ))
        except SessionMoved:
            # The host started the game between the lookup and the insert
            raise SessionNotJoinable('Game already started')
        self.logger.info(f"[join] session={session.id} participant={participant.id} nickname={nickname!r}")
        self.hub.publish(ParticipantJoined(participant))
        return JoinedGame(participant_id=participant.id, session_id=session.id)

    def leave_game(self, session_id, participant_id) -> None:
        session = self._require_session(session_id)
        self._require_participant(session.id, participant_id)
        if session.status != LOBBY:
            raise InvalidTransition('Players can only leave while the game is in the lobby')
        if self.store.delete_participant(participant_id):
            self.logger.info(f"[leave] session={session.id} participant={participant_id}")
            self.hub.publish(ParticipantLeft(session.id, participant_id))

    # ---- host transitions ----

    def start_game(self, session_id):
        session, _ = self._transition(session_id, 'start', lambda s: self.machine.start(s, self.clock()))
        return self._notify(session)

    def reveal_results(self, session_id):
        def apply(s):
            if s.status == RESULTS:
                return s
            return self.machine.reveal(s)

        session, changed = self._transition(session_id, 'reveal', apply)
        try:
            # Repeated reveals re-run the sweep; response uniqueness makes it idempotent
            if self.record_missed_answers:
                self._record_missed_answers(session)
        finally:
            if changed:
                self._notify(session)
        return session

    def advance_or_end(self, session_id):
        def apply(s):
            questions = self._questions(s)
            return self.machine.advance(s, len(questions), self.store.list_participants(s.id), self.clock())

        session, _ = self._transition(session_id, 'advance', apply)
        return self._notify(session)

    def end_game(self, session_id):
        def apply(s):
            return self.machine.end(s, self.store.list_participants(s.id), self.clock())

        session, changed = self._transition(session_id, 'end', apply)
        if not changed:
            return session
        return self._notify(session)

    def _transition(self, session_id, action, apply):
        """Apply a machine transition and persist it conditioned on the prior
        status and version. A lost race re-reads and re-applies, so a retried
        host request fails cleanly instead of applying twice."""
        for _ in range(self.TRANSITION_ATTEMPTS):
            current = self._require_session(session_id)
            updated = apply(current)
            if updated is current:
                return current, False
            try:
                saved = self.store.update_session(updated, current.status, current.version)
            except StaleWrite:
                self.logger.info(f"[transition-retry] session={session_id} action={action} from={current.status}")
                continue
            self.logger.info(
                f"[transition] session={saved.id} {current.status} -> {saved.status} "
                f"index={saved.current_question_index}"
            )
            return saved, True
        raise InvalidTransition(f"Game changed while trying to {action}, refresh and retry")

    def _notify(self, session):
        self.hub.publish(SessionUpdated(session))
        if self.driver is not None:
            self.driver.session_changed(session)
        return session

    def _record_missed_answers(self, session):
        """Give every participant who did not answer the revealed question a
        'no answer' response, so streaks reset the same way a wrong answer does."""
        questions = self._questions(session)
        if session.current_question_index >= len(questions):
            return
        question = questions[session.current_question_index]
        answered = {r.participant_id for r in self.store.list_responses(session.id, question.id)}
        elapsed_ms = self._elapsed_ms(session)
        for participant in self.store.list_participants(session.id):
            if participant.id in answered:
                continue
            try:
                self._record(session, question, participant, None, elapsed_ms, session_version=None)
            except AlreadyAnswered:
                # Submitted between the reveal and this sweep
                continue

    # ---- answers ----

    def submit_answer(self, session_id, participant_id, option_id=None, question_id=None) -> AnswerResult:
        session = self._require_session(session_id)
        if session.status != QUESTION:
            raise QuestionClosed()
        questions = self._questions(session)
        if session.current_question_index >= len(questions):
            raise QuestionClosed()
        question = questions[session.current_question_index]
        if question_id is not None and question_id != question.id:
            raise QuestionClosed()
        participant = self._require_participant(session.id, participant_id)
        if option_id is not None and question.option(option_id) is None:
            raise InvalidOption()

        return self._record(session, question, participant, option_id, self._elapsed_ms(session),
                            session_version=session.version)

    def _record(self, session, question, participant, option_id, response_time_ms, session_version):
        now = self.clock()
        is_correct = option_id is not None and option_id == question.correct_option_id
        time_limit_ms = effective_time_limit(session, question) * 1000

        for _ in range(self.ANSWER_ATTEMPTS):
            result = score(
                base_points=session.points_per_question,
                time_limit_ms=time_limit_ms,
                response_time_ms=response_time_ms,
                speed_scoring=session.speed_scoring,
                current_streak=participant.current_streak,
                is_correct=is_correct,
                is_warmup=question.is_warmup,
            )
            response = ResponseRecord(
                id=None,
                session_id=session.id,
                participant_id=participant.id,
                question_id=question.id,
                selected_option_id=option_id,
                is_correct=is_correct,
                response_time_ms=response_time_ms,
                points_awarded=result.points,
                answered_at=now,
            )
            try:
                saved, participant = self.store.record_response(
                    response, result.new_streak, participant.version, session_version=session_version,
                )
            except DuplicateResponse:
                raise AlreadyAnswered()
            except SessionMoved:
                raise QuestionClosed()
            except StaleWrite:
                # Same participant written concurrently; recompute from the fresh streak
                participant = self._require_participant(session.id, participant.id)
                continue

            self.logger.info(
                f"[answer] session={session.id} participant={participant.id} question={question.id} "
                f"option={option_id} correct={is_correct} warmup={question.is_warmup} "
                f"ms={response_time_ms} points={result.points} streak={result.new_streak}"
            )
            self.hub.publish(ResponseRecorded(saved))
            self.hub.publish(ParticipantUpdated(participant))
            return AnswerResult(
                is_correct=is_correct,
                points_awarded=result.points,
                new_streak=result.new_streak,
                new_total_score=participant.total_score,
                time_bonus=result.time_bonus,
                streak_bonus=result.streak_bonus,
                response_time_ms=response_time_ms,
            )
        raise StoreUnavailable('Could not record the answer, try again')

    # ---- reads ----

    def question_results(self, session_id, question_index=None) -> QuestionTally:
        session = self._require_session(session_id)
        questions = self._questions(session)
        index = session.current_question_index if question_index is None else question_index
        if not 0 <= index < len(questions):
            raise ValidationError('No such question in this game')
        question = questions[index]
        responses = self.store.list_responses(session.id, question.id)
        # The answer stays hidden while the question is still open
        revealed = not (session.status == QUESTION and index == session.current_question_index)
        counts = {option.id: 0 for option in question.options}
        for r in responses:
            if r.selected_option_id in counts:
                counts[r.selected_option_id] += 1
        return QuestionTally(
            question_id=question.id,
            correct_option_id=question.correct_option_id if revealed else None,
            response_count=len(responses),
            answered_count=sum(1 for r in responses if r.selected_option_id is not None),
            option_counts=tuple(counts.items()),
        )

    def get_state(self, session_id) -> dict:
        """Full state snapshot used by the polling path."""
        session = self._require_session(session_id)
        questions = self._questions(session)
        question = None
        if session.status != LOBBY and session.current_question_index < len(questions):
            question = questions[session.current_question_index]

        participants = sorted(
            self.store.list_participants(session.id),
            key=lambda p: (-p.total_score, p.joined_at is None, p.joined_at, p.id),
        )
        ranked = []
        for rank, p in enumerate(participants, start=1):
            item = p.to_dict()
            item['rank'] = rank
            ranked.append(item)

        session_data = session.to_dict()
        deadline = self.machine.deadline(session, question) if question else None
        session_data['deadline'] = deadline.isoformat() if deadline else None
        session_data['question_count'] = len(questions)
        session_data['pin_display'] = format_pin(session.pin)

        state = {
            'session': session_data,
            'participants': ranked,
            'current_question': None,
            'results': None,
        }
        if question is not None:
            revealed = session.status in (RESULTS, FINISHED)
            state['current_question'] = question.to_dict() if revealed else question.public_dict()
            if revealed:
                state['results'] = self.question_results(session.id).to_dict()
        return state

    def current_deadline(self, session):
        questions = self._questions(session)
        if session.current_question_index >= len(questions):
            return None
        return self.machine.deadline(session, questions[session.current_question_index])

    # ---- helpers ----

    def _require_session(self, session_id):
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFound(f"Game {session_id} not found")
        return session

    def _require_participant(self, session_id, participant_id):
        participant = self.store.get_participant(participant_id)
        if participant is None or participant.session_id != session_id:
            raise ParticipantNotFound()
        return participant

    def _questions(self, session):
        quiz = self.store.get_quiz(session.quiz_id)
        if quiz is None:
            raise QuizNotFound(f"Quiz {session.quiz_id} not found")
        return quiz.questions

    def _elapsed_ms(self, session):
        if session.question_started_at is None:
            return 0
        elapsed = self.clock() - session.question_started_at
        return max(0, int(elapsed.total_seconds() * 1000))
