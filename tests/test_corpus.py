import json

import pytest

from conftest import corpus_data
from neet_mock_test.services.corpus import CorpusError, QuestionCorpus


class TestLoading:
    def test_questions_are_stamped_with_labels(self, corpus):
        q = corpus.subject_pool("physics")[0]
        assert q.subject == "Physics"
        assert q.subject_key == "physics"
        assert q.chapter == "Physics Chapter 1"
        assert q.chapter_id == "physics_ch1"

    def test_from_file(self, tmp_path):
        path = tmp_path / "corpus.json"
        path.write_text(json.dumps(corpus_data(physics=3, chemistry=0, biology=0)), encoding="utf-8")
        loaded = QuestionCorpus.from_file(str(path))
        assert loaded.total_count() == 3

    def test_missing_file_raises_corpus_error(self, tmp_path):
        with pytest.raises(CorpusError):
            QuestionCorpus.from_file(str(tmp_path / "missing.json"))

    def test_correct_index_out_of_range_rejected(self):
        data = corpus_data(physics=1, chemistry=0, biology=0)
        data["physics"]["chapters"]["ch1"]["questions"][0]["correct"] = 9
        with pytest.raises(CorpusError):
            QuestionCorpus.from_dict(data)

    def test_single_option_rejected(self):
        data = corpus_data(physics=1, chemistry=0, biology=0)
        data["physics"]["chapters"]["ch1"]["questions"][0]["options"] = ["only"]
        with pytest.raises(CorpusError):
            QuestionCorpus.from_dict(data)

    @pytest.mark.parametrize("data", [
        {"physics": []},
        {"physics": {"chapters": ["ch1"]}},
        {"physics": {"chapters": {"ch1": []}}},
        {"physics": {"chapters": {"ch1": {"questions": {"q": 1}}}}},
        {"physics": {"chapters": {"ch1": {"questions": ["oops"]}}}},
        {"physics": {"icon": ["not", "text"], "chapters": {}}},
    ])
    def test_malformed_shapes_raise_corpus_error(self, data):
        with pytest.raises(CorpusError):
            QuestionCorpus.from_dict(data)

    def test_malformed_question_names_its_chapter(self):
        with pytest.raises(CorpusError, match="physics_ch1"):
            QuestionCorpus.from_dict({"physics": {"chapters": {"ch1": {"questions": [42]}}}})

    def test_bundled_sample_corpus_loads(self):
        from config import CORPUS_FILE

        sample = QuestionCorpus.from_file(CORPUS_FILE)
        assert {s.key for s in sample.subjects()} == {"physics", "chemistry", "biology"}
        assert sample.total_count() > 0


class TestQueries:
    def test_chapters_summary(self, corpus):
        chapters = corpus.chapters("chemistry")
        assert [c["id"] for c in chapters] == ["chemistry_ch1", "chemistry_ch2"]
        assert chapters[0]["question_count"] == 5
        assert chapters[0]["subject"] == "Chemistry"

    def test_chapter_search_by_name_or_topic(self, corpus):
        by_name = corpus.chapters(search="chapter 2")
        assert [c["id"] for c in by_name] == ["physics_ch2", "chemistry_ch2", "biology_ch2"]
        by_topic = corpus.chapters(search="TOPIC 1")
        assert [c["id"] for c in by_topic] == ["physics_ch1", "chemistry_ch1", "biology_ch1"]
        assert [c["id"] for c in corpus.chapters("physics", "topic 2")] == ["physics_ch2"]
        assert corpus.chapters(search="thermodynamics") == []

    def test_all_subjects_keyword(self, corpus):
        assert len(corpus.chapters("all")) == 6

    def test_chapter_counts_unknown_subject(self, corpus):
        assert corpus.chapter_counts("zoology") == []

    def test_questions_for_chapters_union(self, corpus):
        questions = corpus.questions_for_chapters(["physics_ch1", "biology_ch2"])
        assert len(questions) == 5 + 10
        assert {q.subject for q in questions} == {"Physics", "Biology"}

    def test_unknown_and_duplicate_chapter_ids(self, corpus):
        questions = corpus.questions_for_chapters(["physics_ch1", "physics_ch1", "nope"])
        assert len(questions) == 5

    def test_counts(self, corpus):
        assert corpus.total_count() == 40
        assert corpus.subject_counts() == {"Physics": 10, "Chemistry": 10, "Biology": 20}
        assert sum(corpus.year_counts().values()) == 40
        assert list(corpus.year_counts()) == [2015, 2016, 2017]

    def test_questions_by_year(self, corpus):
        assert all(q.year == 2016 for q in corpus.questions_by_year(2016))
        assert len(corpus.questions_by_year(1999)) == 0
