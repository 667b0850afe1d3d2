import contextlib
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Set, Tuple

from .errors import GameError
from .types import QUESTION, RESULTS


def _utcnow():
    return datetime.now(timezone.utc)


class GameDriver:
    """Timer side of a live game: the machine never moves on its own.

    - entering ``question``: schedule a reveal at the question deadline
      (when ``auto_reveal`` is on)
    - entering ``results`` with ``auto_advance``: schedule an advance after
      ``results_duration`` seconds

    One timer per (session, status, question index). When a timer fires it
    re-reads the session and aborts if the host already moved it on.
    """

    def __init__(self, coordinator, spawn, sleep=time.sleep, clock=_utcnow,
                 context=contextlib.nullcontext, logger=None, auto_reveal=True,
                 results_duration=5, enabled=True):
        self.coordinator = coordinator
        self.spawn = spawn
        self.sleep = sleep
        self.clock = clock
        self.context = context
        self.logger = logger or logging.getLogger(__name__)
        self.auto_reveal = auto_reveal
        self.results_duration = results_duration
        self.enabled = enabled
        self._lock = threading.Lock()
        self._scheduled: Set[Tuple[int, str, int]] = set()

    def session_changed(self, session) -> None:
        if not self.enabled:
            return
        if session.status == QUESTION and self.auto_reveal:
            deadline = self.coordinator.current_deadline(session)
            if deadline is None:
                return
            delay = max(0.0, (deadline - self.clock()).total_seconds())
            self._schedule(session, delay, self.coordinator.reveal_results)
        elif session.status == RESULTS and session.auto_advance:
            self._schedule(session, float(self.results_duration), self.coordinator.advance_or_end)

    def pending(self):
        with self._lock:
            return set(self._scheduled)

    def _schedule(self, session, delay, action):
        key = (session.id, session.status, session.current_question_index)
        with self._lock:
            if key in self._scheduled:
                self.logger.info(f"[timer-skip] session={key[0]} status={key[1]} index={key[2]} already scheduled")
                return
            self._scheduled.add(key)
        self.logger.info(f"[timer-set] session={key[0]} status={key[1]} index={key[2]} delay={delay:.1f}s")
        self.spawn(self._worker, key, delay, action)

    def _worker(self, key, delay, action):
        session_id, expected_status, expected_index = key
        self.sleep(delay)
        with self.context():
            with self._lock:
                self._scheduled.discard(key)
            current = self.coordinator.store.get_session(session_id)
            if current is None:
                return
            self.logger.info(
                f"[timer-fire] session={session_id} expected={expected_status}/{expected_index} "
                f"actual={current.status}/{current.current_question_index}"
            )
            if current.status != expected_status or current.current_question_index != expected_index:
                self.logger.info(f"[timer-abort] session={session_id} host already moved on")
                return
            try:
                action(session_id)
            except GameError as exc:
                self.logger.info(f"[timer-abort] session={session_id} {exc.code}: {exc}")
