from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Question(BaseModel):
    """
    NEET PYQ multiple-choice question.
    Pydantic v2, immutable once loaded from the corpus.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Question identifier, unique within its chapter"
    )
    subject: str = Field(
        ...,
        min_length=1,
        description="Subject display label (e.g. Physics)"
    )
    subject_key: str = Field(
        "",
        description="Subject key in the corpus (e.g. physics)"
    )
    chapter: str = Field(
        ...,
        description="Chapter display name"
    )
    chapter_id: str = Field(
        "",
        description="Global chapter id, <subject_key>_<chapter_key>"
    )
    question: str = Field(
        ...,
        min_length=1,
        description="Prompt text"
    )
    options: List[str] = Field(
        ...,
        description="Ordered option strings"
    )
    correct: int = Field(
        ...,
        ge=0,
        description="0-based index of the correct option"
    )
    year: Optional[int] = Field(
        None,
        description="Exam year the question appeared in (PYQ source)"
    )
    explanation: Optional[str] = Field(
        None,
        description="Explanation shown after submission"
    )
    number: Optional[int] = Field(
        None,
        ge=1,
        description="1-based position in a built session. Injected by the builder."
    )

    @field_validator('options')
    @classmethod
    def validate_options_length(cls, v: List[str]) -> List[str]:
        """
        A question needs at least two options.
        """
        if len(v) < 2:
            raise ValueError("options must contain at least 2 entries.")
        return v

    @model_validator(mode='after')
    def validate_correct_in_range(self) -> 'Question':
        """
        The correct index must point into the option list.
        """
        if self.correct >= len(self.options):
            raise ValueError(
                f"correct index {self.correct} is out of range for {len(self.options)} options."
            )
        return self


class Chapter(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Global chapter id, <subject_key>_<chapter_key>")
    key: str = Field(..., description="Chapter key inside its subject")
    subject_key: str
    name: str
    topics: List[str] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)


class Subject(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    icon: str = ""
    chapters: Dict[str, Chapter] = Field(
        default_factory=dict,
        description="chapter key -> Chapter, in corpus order"
    )
