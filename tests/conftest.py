import random
from typing import Any, Dict, List, Optional

import pytest

from neet_mock_test.models.question_model import Question
from neet_mock_test.services.api_client import ApiClient, CredentialStore
from neet_mock_test.services.corpus import QuestionCorpus


def make_question(
    qid: str = "q1",
    subject: str = "Physics",
    correct: int = 0,
    chapter: str = "Kinematics",
    explanation: Optional[str] = None,
) -> Question:
    return Question(
        id=qid,
        subject=subject,
        subject_key=subject.lower(),
        chapter=chapter,
        chapter_id=f"{subject.lower()}_ch",
        question=f"Question {qid}?",
        options=["A", "B", "C", "D"],
        correct=correct,
        year=2020,
        explanation=explanation,
    )


def corpus_data(physics: int = 10, chemistry: int = 10, biology: int = 20, chapters: int = 2) -> Dict[str, Any]:
    """Synthetic corpus with the given number of questions per subject."""
    data: Dict[str, Any] = {}
    for key, count in (("physics", physics), ("chemistry", chemistry), ("biology", biology)):
        chapter_map: Dict[str, Any] = {}
        for c in range(chapters):
            chapter_map[f"ch{c + 1}"] = {"name": f"{key.title()} Chapter {c + 1}", "topics": [f"topic {c + 1}"], "questions": []}
        for i in range(count):
            chapter = chapter_map[f"ch{i % chapters + 1}"]
            chapter["questions"].append({
                "id": f"{key}-{i}",
                "question": f"{key} question {i}",
                "options": ["w", "x", "y", "z"],
                "correct": i % 4,
                "year": 2015 + i % 3,
            })
        data[key] = {"name": key.title(), "icon": key[0].upper(), "chapters": chapter_map}
    return data


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None):
        self.status_code = status_code
        self._body = body
        self.ok = 200 <= status_code < 300
        self.content = b"" if body is None else b"{}"
        self.text = "" if body is None else str(body)

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeHttpSession:
    """Stands in for requests.Session; replays queued responses in order."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def queue(self, response: Any) -> None:
        self.responses.append(response)

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "headers": dict(headers or {}), **kwargs})
        response = self.responses.pop(0) if self.responses else FakeResponse(200, {})
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def corpus():
    return QuestionCorpus.from_dict(corpus_data())


@pytest.fixture
def neet_corpus():
    return QuestionCorpus.from_dict(corpus_data(physics=50, chemistry=50, biology=100))


@pytest.fixture
def http():
    return FakeHttpSession()


@pytest.fixture
def credentials():
    return CredentialStore(None)


@pytest.fixture
def api_client(credentials, http):
    return ApiClient(credentials, base_url="http://service.test/api", timeout=1.0, session=http)
