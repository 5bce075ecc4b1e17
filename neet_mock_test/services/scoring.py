"""
services/scoring.py

Scoring and result analysis business logic.
Pure Python functions: no UI code, no global state changes.
Calling score() twice on the same inputs yields equal results.

Marking scheme (NEET): correct +4, incorrect -1, unattempted 0.
The score is reported as computed and is never clipped at zero.
"""

from collections import OrderedDict
from typing import Dict, List, Mapping, Sequence, Tuple

from neet_mock_test.models.question_model import Question
from neet_mock_test.models.result_model import (
    QuestionOutcome,
    ResultSummary,
    ScoredResult,
    SubjectPerformance,
)

MARKS_PER_CORRECT = 4
MARKS_PER_WRONG = -1
MARKS_PER_UNANSWERED = 0

_GRADE_BANDS: Tuple[Tuple[float, str, str], ...] = (
    (90.0, "A+", "Outstanding performance!"),
    (80.0, "A", "Excellent work!"),
    (70.0, "B+", "Very good performance!"),
    (60.0, "B", "Good effort!"),
    (50.0, "C", "Keep practicing!"),
    (40.0, "D", "Needs improvement"),
)


def score(
    questions: Sequence[Question],
    answers: Mapping[int, int],
    time_spent: int = 0,
) -> ScoredResult:
    """
    Score a completed session.

    Args:
        questions:  session question sequence.
        answers:    answer sheet. {position (0-based): selected option index}
                    Positions without an entry are unattempted.
        time_spent: seconds spent, copied into the summary.

    Returns:
        ScoredResult with per-question outcomes (original order), the overall
        summary and per-subject performance in first-appearance order.
    """
    outcomes: List[QuestionOutcome] = []
    for idx, q in enumerate(questions):
        selected = answers.get(idx)
        attempted = selected is not None
        outcomes.append(
            QuestionOutcome(
                position=idx + 1,
                question=q,
                selected=selected,
                is_attempted=attempted,
                is_correct=(selected == q.correct) if attempted else None,
            )
        )

    counts = _count(outcomes)
    summary = ResultSummary(
        total=len(outcomes),
        attempted=counts["correct"] + counts["incorrect"],
        time_spent=max(0, time_spent),
        **_marks(counts["correct"], counts["incorrect"], counts["unattempted"]),
    )

    return ScoredResult(
        questions=tuple(outcomes),
        summary=summary,
        subjects=tuple(calculate_subject_performance(outcomes)),
    )


def calculate_subject_performance(outcomes: Sequence[QuestionOutcome]) -> List[SubjectPerformance]:
    """
    Per-subject breakdown with the same formulas as the overall summary.

    Returns:
        SubjectPerformance list, ordered by first appearance in the session.
    """
    buckets: "OrderedDict[str, List[QuestionOutcome]]" = OrderedDict()
    for o in outcomes:
        buckets.setdefault(o.question.subject, []).append(o)

    result = []
    for subject, items in buckets.items():
        counts = _count(items)
        result.append(
            SubjectPerformance(
                subject=subject,
                total=len(items),
                **_marks(counts["correct"], counts["incorrect"], counts["unattempted"]),
            )
        )
    return result


def grade(percentage: float) -> Tuple[str, str]:
    """
    Letter grade and message for a score percentage.

    Returns:
        (grade, message), e.g. ("B", "Good effort!")
    """
    for threshold, letter, message in _GRADE_BANDS:
        if percentage >= threshold:
            return letter, message
    return "F", "More practice needed"


def _count(outcomes: Sequence[QuestionOutcome]) -> Dict[str, int]:
    counts = {"correct": 0, "incorrect": 0, "unattempted": 0}
    for o in outcomes:
        if not o.is_attempted:
            counts["unattempted"] += 1
        elif o.is_correct:
            counts["correct"] += 1
        else:
            counts["incorrect"] += 1
    return counts


def _marks(correct: int, incorrect: int, unattempted: int) -> Dict[str, object]:
    total = correct + incorrect + unattempted
    attempted = correct + incorrect
    raw = (
        correct * MARKS_PER_CORRECT
        + incorrect * MARKS_PER_WRONG
        + unattempted * MARKS_PER_UNANSWERED
    )
    max_score = total * MARKS_PER_CORRECT
    return {
        "correct": correct,
        "incorrect": incorrect,
        "unattempted": unattempted,
        "score": raw,
        "max_score": max_score,
        "percentage": round(raw / max_score * 100, 1) if max_score else 0.0,
        "accuracy": round(correct / attempted * 100, 1) if attempted else 0.0,
    }
