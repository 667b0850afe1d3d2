"""Plain records exchanged between the game engine and its stores."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Optional, Tuple

LOBBY = 'lobby'
QUESTION = 'question'
RESULTS = 'results'
FINISHED = 'finished'
# Present in legacy status tables; no transition ever produces it.
ACTIVE = 'active'

STATUSES = (LOBBY, QUESTION, RESULTS, FINISHED)

MULTIPLE_CHOICE = 'multiple_choice'
TRUE_FALSE = 'true_false'
QUESTION_TYPES = (MULTIPLE_CHOICE, TRUE_FALSE)


def _serialize(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, _Record):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


class _Record:
    def to_dict(self) -> dict:
        return {f.name: _serialize(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class GameSettings(_Record):
    time_limit: int
    speed_scoring: bool
    points_per_question: int
    auto_advance: bool


@dataclass(frozen=True)
class OptionRecord(_Record):
    id: int
    question_id: int
    text: str
    is_correct: bool
    order_index: int

    def public_dict(self) -> dict:
        return {'id': self.id, 'text': self.text, 'order_index': self.order_index}


@dataclass(frozen=True)
class QuestionRecord(_Record):
    id: int
    quiz_id: int
    text: str
    order_index: int
    type: str = MULTIPLE_CHOICE
    is_warmup: bool = False
    time_limit_override: Optional[int] = None
    options: Tuple[OptionRecord, ...] = ()

    @property
    def correct_option_id(self) -> Optional[int]:
        for option in self.options:
            if option.is_correct:
                return option.id
        return None

    def option(self, option_id) -> Optional[OptionRecord]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None

    def public_dict(self) -> dict:
        """Question as shown to players while answering: no correctness flags."""
        return {
            'id': self.id,
            'text': self.text,
            'type': self.type,
            'order_index': self.order_index,
            'is_warmup': self.is_warmup,
            'time_limit_override': self.time_limit_override,
            'options': [o.public_dict() for o in self.options],
        }


@dataclass(frozen=True)
class QuizRecord(_Record):
    id: int
    title: str
    time_limit: Optional[int] = None
    speed_scoring: Optional[bool] = None
    points_per_question: Optional[int] = None
    auto_advance: Optional[bool] = None
    questions: Tuple[QuestionRecord, ...] = ()


@dataclass(frozen=True)
class SessionRecord(_Record):
    id: Optional[int]
    quiz_id: int
    pin: str
    status: str
    time_limit: int
    speed_scoring: bool
    points_per_question: int
    auto_advance: bool
    host_id: Optional[str] = None
    current_question_index: int = 0
    question_started_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    winner_id: Optional[int] = None
    version: int = 0

    @property
    def settings(self) -> GameSettings:
        return GameSettings(
            time_limit=self.time_limit,
            speed_scoring=self.speed_scoring,
            points_per_question=self.points_per_question,
            auto_advance=self.auto_advance,
        )

    @property
    def is_active(self) -> bool:
        return self.status != FINISHED


@dataclass(frozen=True)
class ParticipantRecord(_Record):
    id: Optional[int]
    session_id: int
    nickname: str
    avatar_base: str
    avatar_accessory: Optional[str] = None
    user_id: Optional[str] = None
    total_score: int = 0
    current_streak: int = 0
    joined_at: Optional[datetime] = None
    version: int = 0


@dataclass(frozen=True)
class ResponseRecord(_Record):
    id: Optional[int]
    session_id: int
    participant_id: int
    question_id: int
    selected_option_id: Optional[int]
    is_correct: bool
    response_time_ms: int
    points_awarded: int
    answered_at: Optional[datetime] = None


@dataclass(frozen=True)
class QuestionTally(_Record):
    question_id: int
    correct_option_id: Optional[int]
    response_count: int
    answered_count: int
    option_counts: Tuple[Tuple[int, int], ...] = field(default=())

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['option_counts'] = [
            {'option_id': option_id, 'count': count} for option_id, count in self.option_counts
        ]
        return data
