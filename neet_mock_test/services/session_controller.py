"""
services/session_controller.py

Live test session state machine.

    initializing -> active <-> paused
    active | paused -> submitting -> completed

The controller is the single writer of TestSession. Calls that are illegal in
the current state (answering while paused, navigating after submission, ...)
are silent no-ops that return False; nothing here raises into the UI layer
once the session exists.

Two callers reach the controller concurrently: request handlers and the
countdown thread. A re-entrant lock serialises them, and a single-fire flag
guarantees the session is scored exactly once when the timer expiry and a
manual submit collide.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Any, Callable, Dict, Optional

from neet_mock_test.models.question_model import Question
from neet_mock_test.models.result_model import ScoredResult
from neet_mock_test.models.session_state import SessionStatus, TestSession
from neet_mock_test.models.test_config import TestConfig
from neet_mock_test.services import scoring, session_builder
from neet_mock_test.services.corpus import QuestionCorpus
from neet_mock_test.services.countdown import Countdown, format_time, is_low_time
from neet_mock_test.services.remote_sync import RemoteSync, build_payload

logger = logging.getLogger(__name__)

_NAVIGABLE = (SessionStatus.ACTIVE,)
_SUBMITTABLE = (SessionStatus.ACTIVE, SessionStatus.PAUSED)


class SessionController:
    def __init__(
        self,
        session: TestSession,
        remote_sync: Optional[RemoteSync] = None,
        tick_interval: Optional[float] = 1.0,
        is_current: Optional[Callable[[str], bool]] = None,
    ):
        """
        Args:
            session:       freshly built session (status initializing).
            remote_sync:   persistence dispatcher, None to skip submission.
            tick_interval: seconds between countdown ticks. None disables the
                           ticker thread; the caller drives tick() itself.
            is_current:    identity guard for late RemoteSync callbacks. The
                           default accepts callbacks until dispose().
        """
        self._session = session
        self._remote_sync = remote_sync
        self._is_current = is_current or self._default_is_current
        self._lock = threading.RLock()
        self._countdown = Countdown(self.tick, tick_interval) if tick_interval else None

        self._fired = False
        self._disposed = False
        self._result: Optional[ScoredResult] = None
        self._sync_status = "idle"

    @classmethod
    def create(
        cls,
        config: TestConfig,
        corpus: QuestionCorpus,
        rng: Optional[random.Random] = None,
        **kwargs,
    ) -> "SessionController":
        """
        Build a session from config and wrap it in a controller.

        Raises:
            ConfigError: propagated from session_builder.build().
        """
        questions, budget = session_builder.build(config, corpus, rng)
        session = TestSession(
            config=config,
            questions=tuple(questions),
            time_budget=budget,
            remaining_seconds=budget,
        )
        logger.info(f"Session {session.session_id} built ({config.mode.value}, {len(questions)} questions)")
        return cls(session, **kwargs)

    # ══════════════════════════════════════════════════════════════════════════
    # Read-only views
    # ══════════════════════════════════════════════════════════════════════════

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def config(self) -> TestConfig:
        return self._session.config

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def questions(self) -> tuple:
        return self._session.questions

    @property
    def total(self) -> int:
        return self._session.total

    @property
    def current_index(self) -> int:
        return self._session.current_index

    @property
    def current_question(self) -> Question:
        return self._session.questions[self._session.current_index]

    @property
    def remaining_seconds(self) -> int:
        return self._session.remaining_seconds

    @property
    def time_budget(self) -> int:
        return self._session.time_budget

    @property
    def is_paused(self) -> bool:
        return self._session.is_paused

    @property
    def answers(self) -> Dict[int, int]:
        with self._lock:
            return dict(self._session.answers)

    @property
    def marked(self) -> set:
        with self._lock:
            return set(self._session.marked)

    @property
    def result(self) -> Optional[ScoredResult]:
        return self._result

    @property
    def sync_status(self) -> str:
        return self._sync_status

    # ══════════════════════════════════════════════════════════════════════════
    # Lifecycle
    # ══════════════════════════════════════════════════════════════════════════

    def start(self) -> bool:
        with self._lock:
            if self._session.status is not SessionStatus.INITIALIZING:
                return False
            self._session.status = SessionStatus.ACTIVE
            if self._countdown is not None:
                self._countdown.start()
            logger.info(f"Session {self.session_id} started, {self._session.remaining_seconds}s on the clock")
            return True

    def pause(self) -> bool:
        with self._lock:
            if self._session.status is not SessionStatus.ACTIVE:
                return False
            self._session.status = SessionStatus.PAUSED
            self._session.is_paused = True
            return True

    def resume(self) -> bool:
        with self._lock:
            if self._session.status is not SessionStatus.PAUSED:
                return False
            self._session.status = SessionStatus.ACTIVE
            self._session.is_paused = False
            return True

    def tick(self) -> bool:
        """
        Advance the countdown by one second.
        Ignored unless active. Reaching zero submits the session.
        """
        with self._lock:
            if self._session.status is not SessionStatus.ACTIVE:
                return False
            if self._session.remaining_seconds > 0:
                self._session.remaining_seconds -= 1
            if self._session.remaining_seconds == 0:
                logger.info(f"Session {self.session_id}: time is up, auto-submitting")
                self._submit_locked()
            return True

    def submit(self) -> Optional[ScoredResult]:
        """
        Score the session and move to completed.

        Returns:
            the ScoredResult. After completion every call returns the same
            object without rescoring. None if the session was never started.
        """
        with self._lock:
            return self._submit_locked()

    def dispose(self) -> None:
        """Stop the ticker and reject late RemoteSync callbacks."""
        with self._lock:
            self._disposed = True
            if self._countdown is not None:
                self._countdown.cancel()

    # ══════════════════════════════════════════════════════════════════════════
    # Answer sheet
    # ══════════════════════════════════════════════════════════════════════════

    def answer(self, option_index: int) -> bool:
        with self._lock:
            if self._session.status not in _NAVIGABLE:
                return False
            if not 0 <= option_index < len(self.current_question.options):
                return False
            self._session.answers[self._session.current_index] = option_index
            return True

    def clear_answer(self) -> bool:
        with self._lock:
            if self._session.status not in _NAVIGABLE:
                return False
            self._session.answers.pop(self._session.current_index, None)
            return True

    def toggle_mark(self) -> bool:
        with self._lock:
            if self._session.status not in _NAVIGABLE:
                return False
            idx = self._session.current_index
            if idx in self._session.marked:
                self._session.marked.discard(idx)
            else:
                self._session.marked.add(idx)
            return True

    # ══════════════════════════════════════════════════════════════════════════
    # Navigation
    # ══════════════════════════════════════════════════════════════════════════

    def go_to(self, index: int) -> bool:
        with self._lock:
            if self._session.status not in _NAVIGABLE:
                return False
            if not 0 <= index < self._session.total:
                return False
            self._session.current_index = index
            return True

    def next(self) -> bool:
        with self._lock:
            if self._session.current_index >= self._session.total - 1:
                return False
            return self.go_to(self._session.current_index + 1)

    def prev(self) -> bool:
        with self._lock:
            if self._session.current_index <= 0:
                return False
            return self.go_to(self._session.current_index - 1)

    # ══════════════════════════════════════════════════════════════════════════
    # Snapshots for the UI layer
    # ══════════════════════════════════════════════════════════════════════════

    def question_status(self, index: int) -> str:
        """Palette colour of one question button."""
        answered = index in self._session.answers
        marked = index in self._session.marked
        if index == self._session.current_index:
            return "current"
        if marked and answered:
            return "marked-answered"
        if marked:
            return "marked"
        if answered:
            return "answered"
        return "not-answered"

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            s = self._session
            answered = len(s.answers)
            return {
                "session_id": s.session_id,
                "mode": s.config.mode.value,
                "status": s.status.value,
                "is_paused": s.is_paused,
                "total": s.total,
                "current_index": s.current_index,
                "remaining_seconds": s.remaining_seconds,
                "time_budget": s.time_budget,
                "time_display": format_time(s.remaining_seconds),
                "low_time": is_low_time(s.remaining_seconds),
                "answered_count": answered,
                "unanswered_count": s.total - answered,
                "marked_count": len(s.marked),
                "palette": [self.question_status(i) for i in range(s.total)],
                "sync_status": self._sync_status,
            }

    def question_view(self, index: int) -> Optional[Dict[str, Any]]:
        """
        One question as shown during the test. The correct option and the
        explanation stay hidden until the session is completed.
        """
        with self._lock:
            if not 0 <= index < self._session.total:
                return None
            q = self._session.questions[index]
            view = {
                "index": index,
                "number": q.number or index + 1,
                "total": self._session.total,
                "subject": q.subject,
                "chapter": q.chapter,
                "year": q.year,
                "question": q.question,
                "options": list(q.options),
                "selected": self._session.answers.get(index),
                "is_marked": index in self._session.marked,
            }
            if self._session.status is SessionStatus.COMPLETED:
                view["correct"] = q.correct
                view["explanation"] = q.explanation
            return view

    # ══════════════════════════════════════════════════════════════════════════
    # Internals
    # ══════════════════════════════════════════════════════════════════════════

    def _submit_locked(self) -> Optional[ScoredResult]:
        if self._fired:
            return self._result
        if self._session.status not in _SUBMITTABLE:
            return None
        self._fired = True

        self._session.status = SessionStatus.SUBMITTING
        if self._countdown is not None:
            self._countdown.cancel()

        self._result = scoring.score(
            self._session.questions,
            self._session.answers,
            time_spent=self._session.time_spent,
        )
        self._session.status = SessionStatus.COMPLETED
        self._session.is_paused = False

        summary = self._result.summary
        logger.info(
            f"Session {self.session_id} completed: {summary.score}/{summary.max_score} "
            f"({summary.correct} correct, {summary.incorrect} incorrect, {summary.unattempted} skipped)"
        )
        self._dispatch_sync()
        return self._result

    def _dispatch_sync(self) -> None:
        if self._remote_sync is None:
            return
        payload = build_payload(self._result, self._session.config.test_type, self._session.time_spent)
        try:
            future = self._remote_sync.dispatch(
                self.session_id,
                payload,
                is_current=self._is_current,
                on_complete=self._on_sync_complete,
            )
        except RuntimeError as e:
            logger.warning(f"Session {self.session_id}: submission not dispatched ({e})")
            self._sync_status = "failed"
            return
        self._sync_status = "pending" if future is not None else "skipped"

    def _on_sync_complete(self, session_id: str, delivered: bool) -> None:
        with self._lock:
            if session_id != self.session_id:
                return
            self._sync_status = "delivered" if delivered else "failed"

    def _default_is_current(self, session_id: str) -> bool:
        return not self._disposed and session_id == self.session_id
