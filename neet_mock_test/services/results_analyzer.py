"""
services/results_analyzer.py

Read-only views over a completed ScoredResult for the results screen:
question review filters, single-question expansion, subject cards and the
dashboard history summary.

Filtering never renumbers: every outcome keeps the 1-based position it had in
the session sequence.
"""

from typing import Any, Dict, List, Optional, Sequence

from neet_mock_test.models.result_model import (
    OptionReview,
    QuestionOutcome,
    QuestionReview,
    ScoredResult,
    SubjectPerformance,
)
from neet_mock_test.services.scoring import grade

ALL_SUBJECTS = "all"


class ResultsAnalyzer:
    def __init__(self, result: ScoredResult):
        self._result = result
        self._by_position: Dict[int, QuestionOutcome] = {o.position: o for o in result.questions}

    @property
    def result(self) -> ScoredResult:
        return self._result

    def filter(
        self,
        subject: Optional[str] = None,
        incorrect_only: bool = False,
    ) -> List[QuestionOutcome]:
        """
        Question review list.

        Args:
            subject:        subject label, case-insensitive. None or "all" keeps
                            every subject.
            incorrect_only: keep attempted-and-wrong questions only.

        Returns:
            matching outcomes in session order, positions unchanged.
        """
        wanted = (subject or ALL_SUBJECTS).strip().lower()
        matches = []
        for o in self._result.questions:
            if wanted != ALL_SUBJECTS and o.question.subject.lower() != wanted:
                continue
            if incorrect_only and not o.is_incorrect:
                continue
            matches.append(o)
        return matches

    def expand(self, position: int) -> QuestionReview:
        """
        Full review of one question: text, tagged options, explanation.

        Raises:
            KeyError: no question at that position.
        """
        o = self._by_position[position]
        q = o.question
        options = []
        for idx, text in enumerate(q.options):
            is_correct = idx == q.correct
            is_selected = idx == o.selected
            if is_correct:
                tag = "Correct"
            elif is_selected:
                tag = "Your Answer"
            else:
                tag = None
            options.append(
                OptionReview(
                    index=idx,
                    letter=chr(ord("A") + idx),
                    text=text,
                    is_correct=is_correct,
                    is_selected=is_selected,
                    tag=tag,
                )
            )
        return QuestionReview(
            position=o.position,
            subject=q.subject,
            chapter=q.chapter,
            year=q.year,
            question=q.question,
            options=options,
            selected=o.selected,
            is_attempted=o.is_attempted,
            is_correct=o.is_correct,
            explanation=q.explanation or None,
        )

    def subjects(self) -> List[str]:
        return [s.subject for s in self._result.subjects]

    def subject_performance(self, subject: str) -> Optional[SubjectPerformance]:
        wanted = subject.lower()
        for s in self._result.subjects:
            if s.subject.lower() == wanted:
                return s
        return None

    def grade(self) -> Dict[str, str]:
        letter, message = grade(self._result.summary.percentage)
        return {"grade": letter, "message": message}


def summarize_history(entries: Sequence[Dict[str, Any]], total: Optional[int] = None) -> Dict[str, Any]:
    """
    Dashboard numbers for one page of test history.

    Args:
        entries: history items from the persistence service (need "percentage").
        total:   total tests reported by pagination, defaults to len(entries).

    Returns:
        {"tests_taken", "average_percentage", "best_percentage"}
    """
    percentages = [float(e.get("percentage", 0) or 0) for e in entries]
    return {
        "tests_taken": total if total is not None else len(entries),
        "average_percentage": round(sum(percentages) / len(percentages), 1) if percentages else 0.0,
        "best_percentage": round(max(percentages), 1) if percentages else 0.0,
    }
