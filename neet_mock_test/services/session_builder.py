"""
services/session_builder.py

Question-set assembly for a new test session.
Pure functions over the corpus: no UI code, no global state.

Modes:
  - custom : union of the selected chapters, shuffled, no truncation
  - full   : whole corpus, shuffled, capped at 180
  - neet   : stratified paper, 45 Physics / 45 Chemistry / 90 Biology
"""

import logging
import random
from typing import List, MutableSequence, Optional, Sequence, Tuple, TypeVar

from neet_mock_test.models.question_model import Question
from neet_mock_test.models.test_config import TestConfig, TestMode
from neet_mock_test.services.corpus import QuestionCorpus

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ── constants ────────────────────────────────────────────────────────────────
FULL_TEST_CAP = 180
MIN_TIME_BUDGET = 1800            # 30 minutes
CUSTOM_SECONDS_PER_QUESTION = 90
FULL_SECONDS_PER_QUESTION = 180
NEET_DURATION_SECONDS = 180 * 60  # 3 hours, independent of the actual count

# Paper order matters: Physics -> Chemistry -> Biology
NEET_QUOTAS: Tuple[Tuple[str, int], ...] = (
    ("physics", 45),
    ("chemistry", 45),
    ("biology", 90),  # 45 Botany + 45 Zoology
)


class ConfigError(ValueError):
    """Test configuration cannot produce a session."""


def shuffle(items: MutableSequence[T], rng: Optional[random.Random] = None) -> MutableSequence[T]:
    """
    In-place Fisher-Yates shuffle. Every permutation is equally likely.

    Args:
        items: sequence to permute.
        rng:   random source. Pass a seeded random.Random for reproducible order.

    Returns:
        the same sequence, permuted.
    """
    rng = rng or random.Random()
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def build(
    config: TestConfig,
    corpus: QuestionCorpus,
    rng: Optional[random.Random] = None,
) -> Tuple[List[Question], int]:
    """
    Build the question sequence and initial time budget for a test.

    Args:
        config: test configuration.
        corpus: loaded question corpus.
        rng:    random source shared by every shuffle of this build.

    Returns:
        (questions numbered 1..N, time budget in seconds)

    Raises:
        ConfigError: custom mode without chapters, or an empty resolved pool.
    """
    rng = rng or random.Random()

    if config.mode is TestMode.NEET:
        questions = _build_neet(corpus, rng)
    elif config.mode is TestMode.FULL:
        questions = shuffle(corpus.all_questions(), rng)[:FULL_TEST_CAP]
    else:
        if not config.chapters:
            raise ConfigError("Select at least one chapter for a custom test.")
        questions = shuffle(corpus.questions_for_chapters(config.chapters), rng)

    if not questions:
        raise ConfigError(f"No questions available for a {config.mode.value} test.")

    budget = time_budget_for(config, len(questions))

    numbered = _renumber(questions)
    logger.info(f"build: mode={config.mode.value}, {len(numbered)} questions, {budget}s budget")
    return numbered, budget


def _build_neet(corpus: QuestionCorpus, rng: random.Random) -> List[Question]:
    """Stratified sample. A short subject pool is taken whole, never backfilled."""
    questions: List[Question] = []
    for subject_key, target in NEET_QUOTAS:
        pool = shuffle(list(corpus.subject_pool(subject_key)), rng)
        if len(pool) < target:
            logger.warning(
                f"NEET paper: {subject_key} has {len(pool)} questions, "
                f"target {target}; taking all of them"
            )
        questions.extend(pool[:target])
    return questions


def _renumber(questions: Sequence[Question]) -> List[Question]:
    return [q.model_copy(update={"number": i}) for i, q in enumerate(questions, start=1)]


def time_budget_for(config: TestConfig, question_count: int) -> int:
    """Initial time budget for a session of question_count questions."""
    if config.mode is TestMode.NEET:
        return NEET_DURATION_SECONDS
    if config.mode is TestMode.FULL:
        return max(question_count * FULL_SECONDS_PER_QUESTION, MIN_TIME_BUDGET)
    return max(question_count * CUSTOM_SECONDS_PER_QUESTION, MIN_TIME_BUDGET)
