"""
services/corpus.py

Static NEET PYQ corpus (Subject -> Chapter -> Question).
Public API:
  - QuestionCorpus.from_file(path) / from_dict(data) : load once at startup
  - subjects(), chapters(), chapter_counts()         : chapter selection screen
  - questions_for_chapters(ids), subject_pool(key)   : pool lookups for the builder
  - total_count(), subject_counts(), year_counts()   : home screen statistics

The pool index (subject -> flat list, chapter id -> flat list) is built once
at load time; lookups never walk the hierarchy again.
The corpus is never mutated after loading.
"""

import json
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from neet_mock_test.models.question_model import Chapter, Question, Subject

logger = logging.getLogger(__name__)


class CorpusError(ValueError):
    """Malformed corpus data."""


def chapter_id_for(subject_key: str, chapter_key: str) -> str:
    return f"{subject_key}_{chapter_key}"


class QuestionCorpus:
    def __init__(self, subjects: Iterable[Subject]):
        self._subjects: Dict[str, Subject] = {s.key: s for s in subjects}

        # ── pool index ───────────────────────────────────────────────────────
        self._by_subject: Dict[str, Tuple[Question, ...]] = {}
        self._by_chapter: Dict[str, Tuple[Question, ...]] = {}
        self._chapters: Dict[str, Chapter] = {}
        for subject in self._subjects.values():
            pool: List[Question] = []
            for chapter in subject.chapters.values():
                self._chapters[chapter.id] = chapter
                self._by_chapter[chapter.id] = tuple(chapter.questions)
                pool.extend(chapter.questions)
            self._by_subject[subject.key] = tuple(pool)

        logger.info(
            f"Corpus loaded: {len(self._subjects)} subjects, "
            f"{len(self._chapters)} chapters, {self.total_count()} questions"
        )

    # ══════════════════════════════════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════════════════════════════════

    @classmethod
    def from_file(cls, path: str) -> "QuestionCorpus":
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CorpusError(f"Could not read corpus file {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestionCorpus":
        """
        Build a corpus from the nested JSON shape:

            {subject_key: {name, icon, chapters: {chapter_key:
                {name, topics, questions: [{id, question, options, correct,
                                            year?, explanation?}]}}}}

        Each question is stamped with its subject and chapter labels.
        """
        if not isinstance(data, dict):
            raise CorpusError("Corpus root must be an object keyed by subject.")

        subjects: List[Subject] = []
        for subject_key, raw_subject in data.items():
            if not isinstance(raw_subject, dict):
                raise CorpusError(f"Subject {subject_key!r} must be an object.")
            name = raw_subject.get("name") or subject_key.title()
            raw_chapters = raw_subject.get("chapters") or {}
            if not isinstance(raw_chapters, dict):
                raise CorpusError(f"Chapters of subject {subject_key!r} must be an object keyed by chapter.")

            chapters: Dict[str, Chapter] = {}
            for chapter_key, raw_chapter in raw_chapters.items():
                cid = chapter_id_for(subject_key, chapter_key)
                if not isinstance(raw_chapter, dict):
                    raise CorpusError(f"Chapter {cid!r} must be an object.")
                chapter_name = raw_chapter.get("name", chapter_key)
                raw_questions = raw_chapter.get("questions") or []
                if not isinstance(raw_questions, list):
                    raise CorpusError(f"Questions of chapter {cid!r} must be a list.")
                questions = [
                    _load_question(raw_q, name, subject_key, chapter_name, cid)
                    for raw_q in raw_questions
                ]
                try:
                    chapters[chapter_key] = Chapter(
                        id=cid,
                        key=chapter_key,
                        subject_key=subject_key,
                        name=chapter_name,
                        topics=raw_chapter.get("topics", []),
                        questions=questions,
                    )
                except ValidationError as e:
                    raise CorpusError(f"Invalid chapter {cid}: {e}") from e
            try:
                subjects.append(
                    Subject(key=subject_key, name=name, icon=raw_subject.get("icon", ""), chapters=chapters)
                )
            except ValidationError as e:
                raise CorpusError(f"Invalid subject {subject_key!r}: {e}") from e
        return cls(subjects)

    # ══════════════════════════════════════════════════════════════════════════
    # Queries
    # ══════════════════════════════════════════════════════════════════════════

    def subjects(self) -> List[Subject]:
        return list(self._subjects.values())

    def chapters(self, subject_key: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Chapter summaries for the selection screen, in corpus order.

        Args:
            subject_key: keep one subject only. None or "all" keeps every subject.
            search:      case-insensitive substring of the chapter name or of
                         any of its topics.
        """
        needle = (search or "").strip().lower()
        result = []
        for subject in self._subjects.values():
            if subject_key and subject_key != "all" and subject.key != subject_key:
                continue
            for chapter in subject.chapters.values():
                if needle and not _matches(chapter, needle):
                    continue
                result.append({
                    "id": chapter.id,
                    "name": chapter.name,
                    "subject": subject.name,
                    "subject_key": subject.key,
                    "icon": subject.icon,
                    "topics": list(chapter.topics),
                    "question_count": len(chapter.questions),
                })
        return result

    def chapter_counts(self, subject_key: str) -> List[Dict[str, Any]]:
        subject = self._subjects.get(subject_key)
        if subject is None:
            return []
        return [
            {"id": c.id, "name": c.name, "count": len(c.questions)}
            for c in subject.chapters.values()
        ]

    def questions_for_chapters(self, chapter_ids: Iterable[str]) -> List[Question]:
        """
        Union of the named chapters' questions, in corpus order.
        Unknown ids are ignored, duplicates collapse.
        """
        wanted = set(chapter_ids)
        unknown = wanted - self._chapters.keys()
        if unknown:
            logger.warning(f"Ignoring unknown chapter ids: {sorted(unknown)}")

        questions: List[Question] = []
        for cid, pool in self._by_chapter.items():
            if cid in wanted:
                questions.extend(pool)
        return questions

    def subject_pool(self, subject_key: str) -> Tuple[Question, ...]:
        return self._by_subject.get(subject_key, ())

    def all_questions(self) -> List[Question]:
        questions: List[Question] = []
        for pool in self._by_subject.values():
            questions.extend(pool)
        return questions

    def questions_by_year(self, year: int) -> List[Question]:
        return [q for q in self.all_questions() if q.year == year]

    def total_count(self) -> int:
        return sum(len(pool) for pool in self._by_subject.values())

    def subject_counts(self) -> Dict[str, int]:
        """{subject display name: question count}"""
        return {
            self._subjects[key].name: len(pool)
            for key, pool in self._by_subject.items()
        }

    def year_counts(self) -> Dict[int, int]:
        counts = Counter(q.year for q in self.all_questions() if q.year is not None)
        return dict(sorted(counts.items()))


def _matches(chapter: Chapter, needle: str) -> bool:
    if needle in chapter.name.lower():
        return True
    return any(needle in topic.lower() for topic in chapter.topics)


_STAMPED_FIELDS = ("id","subject", "subject_key", "chapter", "chapter_id", "number")


def _load_question(
    raw: Dict[str, Any],
    subject_name: str,
    subject_key: str,
    chapter_name: str,
    chapter_id: str,
) -> Question:
    if not isinstance(raw, dict):
        raise CorpusError(f"Question entry in {chapter_id} must be an object, got {type(raw).__name__}.")
    fields = {k: v for k, v in raw.items() if k not in _STAMPED_FIELDS}
    try:
        return Question(
            **fields,
            id=str(raw.get("id", "")),
            subject=subject_name,
            subject_key=subject_key,
            chapter=chapter_name,
            chapter_id=chapter_id,
        )
    except (ValidationError, TypeError) as e:
        raise CorpusError(f"Invalid question {raw.get('id')!r} in {chapter_id}: {e}") from e
