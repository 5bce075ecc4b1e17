"""
models/session_state.py

OMR sheet model holding the live state of one test session.
Pydantic BaseModel based. Mutated only by SessionController.
No UI code.
"""

import uuid
from enum import Enum
from typing import Dict, Set, Tuple

from pydantic import BaseModel, Field

from neet_mock_test.models.question_model import Question
from neet_mock_test.models.test_config import TestConfig


class SessionStatus(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    PAUSED = "paused"
    SUBMITTING = "submitting"
    COMPLETED = "completed"


class TestSession(BaseModel):
    """
    Full state of a user's test session.

    Attributes:
        session_id:        identity used to guard late RemoteSync callbacks.
        config:            configuration the session was built from.
        questions:         question sequence, fixed at build time.
        answers:           answer sheet. {position (0-based): option index}
        marked:            positions marked for review.
        current_index:     position currently shown (0-based).
        time_budget:       initial time budget in seconds.
        remaining_seconds: countdown value in seconds.
        is_paused:         True while the countdown is suspended.
        status:            lifecycle status.
    """

    session_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Session identity (uuid hex)"
    )
    config: TestConfig = Field(default_factory=TestConfig)
    questions: Tuple[Question, ...] = Field(
        default_factory=tuple,
        description="Question sequence, never reordered after build"
    )
    answers: Dict[int, int] = Field(
        default_factory=dict,
        description="Answer sheet. key: position, value: selected option index"
    )
    marked: Set[int] = Field(
        default_factory=set,
        description="Positions marked for review"
    )
    current_index: int = Field(
        default=0,
        ge=0,
        description="Current position (0-based)"
    )
    time_budget: int = Field(default=0, ge=0)
    remaining_seconds: int = Field(default=0, ge=0)
    is_paused: bool = False
    status: SessionStatus = SessionStatus.INITIALIZING

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def time_spent(self) -> int:
        return self.time_budget - self.remaining_seconds
