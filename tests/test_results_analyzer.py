import pytest

from conftest import make_question
from neet_mock_test.services import scoring
from neet_mock_test.services.results_analyzer import ResultsAnalyzer, summarize_history


@pytest.fixture
def analyzer():
    questions = [
        make_question("p1", "Physics", correct=0, explanation="Because."),
        make_question("c1", "Chemistry", correct=1),
        make_question("b1", "Biology", correct=2),
        make_question("p2", "Physics", correct=3),
        make_question("b2", "Biology", correct=0),
    ]
    # p1 right, c1 wrong, b1 blank, p2 wrong, b2 right
    answers = {0: 0, 1: 2, 3: 1, 4: 0}
    return ResultsAnalyzer(scoring.score(questions, answers))


class TestFilter:
    def test_no_filter_returns_everything_in_order(self, analyzer):
        assert [o.position for o in analyzer.filter()] == [1, 2, 3, 4, 5]
        assert [o.position for o in analyzer.filter("all")] == [1, 2, 3, 4, 5]

    def test_subject_filter_keeps_positions(self, analyzer):
        physics = analyzer.filter("physics")
        assert [o.position for o in physics] == [1, 4]
        assert [o.question.id for o in physics] == ["p1", "p2"]

    def test_incorrect_only_skips_blanks(self, analyzer):
        assert [o.position for o in analyzer.filter(incorrect_only=True)] == [2, 4]

    def test_combined_filters(self, analyzer):
        assert [o.position for o in analyzer.filter("Physics", incorrect_only=True)] == [4]
        assert analyzer.filter("Biology", incorrect_only=True) == []

    def test_filtering_does_not_touch_result(self, analyzer):
        before = analyzer.result
        analyzer.filter("chemistry", incorrect_only=True)
        assert analyzer.result is before
        assert len(analyzer.result.questions) == 5


class TestExpand:
    def test_wrong_answer_tags(self, analyzer):
        review = analyzer.expand(2)
        assert review.position == 2
        assert review.subject == "Chemistry"
        tags = {o.letter: o.tag for o in review.options}
        assert tags == {"A": None, "B": "Correct", "C": "Your Answer", "D": None}
        assert review.is_correct is False

    def test_correct_answer_shows_explanation(self, analyzer):
        review = analyzer.expand(1)
        assert review.options[0].is_correct and review.options[0].is_selected
        assert review.options[0].tag == "Correct"
        assert review.explanation == "Because."

    def test_unattempted(self, analyzer):
        review = analyzer.expand(3)
        assert review.is_attempted is False
        assert review.selected is None
        assert not any(o.is_selected for o in review.options)
        assert review.explanation is None

    def test_unknown_position(self, analyzer):
        with pytest.raises(KeyError):
            analyzer.expand(42)


class TestSubjects:
    def test_subject_list_and_lookup(self, analyzer):
        assert analyzer.subjects() == ["Physics", "Chemistry", "Biology"]
        physics = analyzer.subject_performance("PHYSICS")
        assert (physics.correct, physics.incorrect, physics.score) == (1, 1, 3)
        assert analyzer.subject_performance("Zoology") is None

    def test_grade(self, analyzer):
        # score = 2*4 - 2 = 6 of 20 -> 30%
        assert analyzer.result.summary.percentage == 30.0
        assert analyzer.grade() == {"grade": "F", "message": "More practice needed"}


class TestHistorySummary:
    def test_summary(self):
        entries = [{"percentage": 50}, {"percentage": 75.5}, {"percentage": 20}]
        stats = summarize_history(entries, total=12)
        assert stats == {"tests_taken": 12, "average_percentage": 48.5, "best_percentage": 75.5}

    def test_empty(self):
        assert summarize_history([]) == {"tests_taken": 0, "average_percentage": 0.0, "best_percentage": 0.0}
