"""
models/result_model.py

Scored result of a completed session. Produced once, immutable afterwards.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from neet_mock_test.models.question_model import Question


class QuestionOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    position: int = Field(..., ge=1, description="1-based position in the session sequence")
    question: Question
    selected: Optional[int] = Field(None, description="Selected option index, None if unattempted")
    is_attempted: bool = False
    is_correct: Optional[bool] = Field(None, description="None when not attempted")

    @property
    def is_incorrect(self) -> bool:
        return self.is_attempted and not self.is_correct


class ResultSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    attempted: int = 0
    correct: int = 0
    incorrect: int = 0
    unattempted: int = 0
    score: int = 0
    max_score: int = 0
    percentage: float = 0.0
    accuracy: float = 0.0
    time_spent: int = Field(0, ge=0, description="Seconds spent in the session")


class SubjectPerformance(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    total: int = 0
    correct: int = 0
    incorrect: int = 0
    unattempted: int = 0
    score: int = 0
    max_score: int = 0
    percentage: float = 0.0
    accuracy: float = 0.0


class ScoredResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    questions: Tuple[QuestionOutcome, ...] = ()
    summary: ResultSummary = Field(default_factory=ResultSummary)
    subjects: Tuple[SubjectPerformance, ...] = ()


class OptionReview(BaseModel):
    index: int
    letter: str
    text: str
    is_correct: bool = False
    is_selected: bool = False
    tag: Optional[str] = Field(None, description="'Correct' or 'Your Answer'")


class QuestionReview(BaseModel):
    """Expanded view of one question on the results screen."""

    position: int
    subject: str
    chapter: str
    year: Optional[int] = None
    question: str
    options: List[OptionReview] = Field(default_factory=list)
    selected: Optional[int] = None
    is_attempted: bool = False
    is_correct: Optional[bool] = None
    explanation: Optional[str] = None
