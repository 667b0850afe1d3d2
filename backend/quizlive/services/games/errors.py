"""Errors raised by the game engine.

Every failure a client can observe is a ``GameError`` carrying a stable
``code`` and the HTTP status the API layer answers with. The store-level
signals at the bottom never leave the engine; the coordinator translates
or retries them.
"""


class GameError(Exception):
    code = 'game_error'
    http_status = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class NotFound(GameError):
    """Resource not found"""
    code = 'not_found'
    http_status = 404


class QuizNotFound(NotFound):
    """Quiz not found"""
    code = 'quiz_not_found'


class SessionNotFound(NotFound):
    """Game not found"""
    code = 'session_not_found'


class ParticipantNotFound(NotFound):
    """Player not found in this game"""
    code = 'participant_not_found'


class InvalidTransition(GameError):
    """Transition not allowed from the current state"""
    code = 'invalid_transition'
    http_status = 409


class AlreadyAnswered(GameError):
    """Answer already submitted for this question"""
    code = 'already_answered'
    http_status = 409


class QuestionClosed(GameError):
    """This question is no longer accepting answers"""
    code = 'question_closed'
    http_status = 409


class InvalidOption(GameError):
    """Option does not belong to the current question"""
    code = 'invalid_option'


class SessionNotJoinable(GameError):
    """Game not found or already started"""
    code = 'session_not_joinable'
    http_status = 403


class PinExhausted(GameError):
    """Could not allocate a free game PIN"""
    code = 'pin_exhausted'
    http_status = 503


class ValidationError(GameError):
    """Invalid request"""
    code = 'validation_error'


class StoreUnavailable(GameError):
    """Game store is unavailable, try again"""
    code = 'store_unavailable'
    http_status = 503


# ---- store signals ----

class StoreSignal(Exception):
    pass


class PinCollision(StoreSignal):
    """The PIN is held by another non-finished session."""


class DuplicateResponse(StoreSignal):
    """A response for (participant, question) already exists."""


class StaleWrite(StoreSignal):
    """Compare-and-swap lost: the row changed since it was read."""


class SessionMoved(StoreSignal):
    """The session left the state the write was conditioned on."""
