import threading
import time

import pytest

from conftest import FakeResponse, make_question
from neet_mock_test.models.session_state import SessionStatus, TestSession as SessionState
from neet_mock_test.models.test_config import TestConfig as ExamConfig, TestMode as ExamMode
from neet_mock_test.services import scoring
from neet_mock_test.services.remote_sync import RemoteSync
from neet_mock_test.services.session_builder import ConfigError
from neet_mock_test.services.session_controller import SessionController


def _controller(n=5, remaining=100, **kwargs) -> SessionController:
    questions = tuple(make_question(f"q{i}", correct=i % 4) for i in range(n))
    session = SessionState(questions=questions, time_budget=remaining, remaining_seconds=remaining)
    kwargs.setdefault("tick_interval", None)
    return SessionController(session, **kwargs)


@pytest.fixture
def ctrl():
    c = _controller()
    c.start()
    return c


class TestLifecycle:
    def test_starts_initializing(self):
        c = _controller()
        assert c.status is SessionStatus.INITIALIZING
        assert c.tick() is False
        assert c.remaining_seconds == 100

    def test_start_only_once(self):
        c = _controller()
        assert c.start() is True
        assert c.start() is False
        assert c.status is SessionStatus.ACTIVE

    def test_pause_resume(self, ctrl):
        assert ctrl.pause() is True
        assert ctrl.status is SessionStatus.PAUSED and ctrl.is_paused
        assert ctrl.pause() is False
        assert ctrl.resume() is True
        assert ctrl.status is SessionStatus.ACTIVE and not ctrl.is_paused
        assert ctrl.resume() is False

    def test_submit_before_start_is_noop(self):
        c = _controller()
        assert c.submit() is None
        assert c.status is SessionStatus.INITIALIZING

    def test_create_from_config(self, corpus, rng):
        c = SessionController.create(ExamConfig(chapters=["physics_ch1"]), corpus, rng, tick_interval=None)
        assert c.total == 5
        assert c.time_budget == c.remaining_seconds == 1800
        assert c.status is SessionStatus.INITIALIZING

    def test_create_propagates_config_error(self, corpus):
        with pytest.raises(ConfigError):
            SessionController.create(ExamConfig(mode=ExamMode.CUSTOM), corpus, tick_interval=None)


class TestTimer:
    def test_ticks_decrement(self, ctrl):
        for _ in range(5):
            ctrl.tick()
        assert ctrl.remaining_seconds == 95

    def test_paused_ticks_leave_time_untouched(self, ctrl):
        ctrl.pause()
        for _ in range(5):
            assert ctrl.tick() is False
        assert ctrl.remaining_seconds == 100
        ctrl.resume()
        for _ in range(5):
            ctrl.tick()
        assert ctrl.remaining_seconds == 95

    def test_expiry_auto_submits(self):
        c = _controller(remaining=3)
        c.start()
        c.answer(0)
        for _ in range(3):
            c.tick()
        assert c.remaining_seconds == 0
        assert c.status is SessionStatus.COMPLETED
        result = c.result
        assert result is not None
        assert result.summary.time_spent == 3
        assert c.submit() is result

    def test_ticks_after_completion_ignored(self):
        c = _controller(remaining=1)
        c.start()
        c.tick()
        assert c.tick() is False
        assert c.remaining_seconds == 0

    def test_background_ticker(self):
        c = _controller(remaining=2, tick_interval=0.01)
        c.start()
        deadline = time.time() + 5
        while c.status is not SessionStatus.COMPLETED and time.time() < deadline:
            time.sleep(0.01)
        assert c.status is SessionStatus.COMPLETED
        assert c.remaining_seconds == 0


class TestExactlyOnceSubmit:
    def test_second_submit_returns_cached_result(self, ctrl, monkeypatch):
        calls = []
        real_score = scoring.score

        def counting_score(*args, **kwargs):
            calls.append(1)
            return real_score(*args, **kwargs)

        monkeypatch.setattr(scoring, "score", counting_score)
        first = ctrl.submit()
        second = ctrl.submit()
        assert first is second
        assert len(calls) == 1
        assert ctrl.status is SessionStatus.COMPLETED

    def test_timer_and_manual_submit_race(self, monkeypatch):
        calls = []
        real_score = scoring.score

        def slow_score(*args, **kwargs):
            calls.append(1)
            time.sleep(0.05)
            return real_score(*args, **kwargs)

        monkeypatch.setattr(scoring, "score", slow_score)
        c = _controller(remaining=1)
        c.start()

        results = []
        threads = [
            threading.Thread(target=lambda: (c.tick(), results.append(c.result))),
            threading.Thread(target=lambda: results.append(c.submit())),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert results[0] is results[1] is c.result

    def test_submit_while_paused(self, ctrl):
        ctrl.pause()
        result = ctrl.submit()
        assert result is not None
        assert ctrl.status is SessionStatus.COMPLETED
        assert not ctrl.is_paused


class TestAnswerSheet:
    def test_answer_is_idempotent(self, ctrl):
        ctrl.answer(2)
        first = ctrl.answers
        ctrl.answer(2)
        assert ctrl.answers == first == {0: 2}

    def test_answer_overwrites(self, ctrl):
        ctrl.answer(1)
        ctrl.answer(3)
        assert ctrl.answers == {0: 3}

    def test_out_of_range_option_is_noop(self, ctrl):
        assert ctrl.answer(4) is False
        assert ctrl.answer(-1) is False
        assert ctrl.answers == {}

    def test_clear_answer(self, ctrl):
        ctrl.answer(1)
        assert ctrl.clear_answer() is True
        assert ctrl.answers == {}
        assert ctrl.clear_answer() is True
        assert ctrl.answers == {}

    def test_toggle_mark_twice_restores(self, ctrl):
        ctrl.toggle_mark()
        assert ctrl.marked == {0}
        ctrl.toggle_mark()
        assert ctrl.marked == set()

    def test_operations_rejected_while_paused(self, ctrl):
        ctrl.answer(1)
        ctrl.pause()
        assert ctrl.answer(2) is False
        assert ctrl.clear_answer() is False
        assert ctrl.toggle_mark() is False
        assert ctrl.next() is False
        assert ctrl.go_to(3) is False
        assert ctrl.answers == {0: 1}
        assert ctrl.marked == set()
        assert ctrl.current_index == 0

    def test_operations_rejected_after_completion(self, ctrl):
        ctrl.submit()
        assert ctrl.answer(1) is False
        assert ctrl.next() is False
        assert ctrl.pause() is False
        assert ctrl.answers == {}


class TestNavigation:
    def test_next_prev_bounded(self, ctrl):
        assert ctrl.prev() is False
        for _ in range(4):
            assert ctrl.next() is True
        assert ctrl.current_index == 4
        assert ctrl.next() is False
        assert ctrl.prev() is True
        assert ctrl.current_index == 3

    def test_go_to_out_of_range_is_noop(self, ctrl):
        assert ctrl.go_to(2) is True
        assert ctrl.go_to(5) is False
        assert ctrl.go_to(-1) is False
        assert ctrl.current_index == 2

    def test_answers_follow_position(self, ctrl):
        ctrl.answer(0)
        ctrl.go_to(3)
        ctrl.answer(3)
        assert ctrl.answers == {0: 0, 3: 3}
        result = ctrl.submit()
        assert result.summary.correct == 2


class TestSnapshot:
    def test_palette_and_counts(self, ctrl):
        ctrl.answer(0)
        ctrl.next()
        ctrl.toggle_mark()
        ctrl.next()
        ctrl.answer(1)
        ctrl.toggle_mark()
        ctrl.next()

        snap = ctrl.snapshot()
        assert snap["palette"] == ["answered", "marked", "marked-answered", "current", "not-answered"]
        assert snap["answered_count"] == 2
        assert snap["marked_count"] == 2
        assert snap["unanswered_count"] == 3
        assert snap["time_display"] == "1:40"
        assert snap["low_time"] is True

    def test_question_view_hides_answer_until_completed(self, ctrl):
        view = ctrl.question_view(0)
        assert "correct" not in view
        ctrl.submit()
        assert ctrl.question_view(0)["correct"] == 0
        assert ctrl.question_view(99) is None


class TestRemoteSyncDispatch:
    def test_completion_dispatches_once(self, api_client, credentials, http):
        credentials.save("tok", {"name": "A"})
        sync = RemoteSync(api_client)
        c = _controller(remote_sync=sync)
        c.start()
        c.answer(0)
        c.submit()
        c.submit()
        sync.shutdown(wait=True)

        submits = [call for call in http.calls if call["url"].endswith("/test/submit")]
        assert len(submits) == 1
        body = submits[0]["json"]
        assert body["testType"] == "chapter"
        assert body["questions"][0] == {
            "subject": "Physics",
            "chapter": "Kinematics",
            "userAnswer": 0,
            "correctIndex": 0,
            "isCorrect": True,
            "isAttempted": True,
        }
        assert c.sync_status == "delivered"

    def test_failed_sync_leaves_result_untouched(self, api_client, credentials, http):
        credentials.save("tok", {"name": "A"})
        http.queue(FakeResponse(500, {"message": "boom"}))
        sync = RemoteSync(api_client)
        c = _controller(remote_sync=sync)
        c.start()
        result = c.submit()
        sync.shutdown(wait=True)
        assert c.result is result
        assert c.sync_status == "failed"

    def test_unexpected_sync_error_marks_failed(self, api_client, credentials, http):
        credentials.save("tok", {"name": "A"})
        http.queue(KeyError("broken transport"))
        sync = RemoteSync(api_client)
        c = _controller(remote_sync=sync)
        c.start()
        result = c.submit()
        sync.shutdown(wait=True)
        assert c.result is result
        assert c.sync_status == "failed"

    def test_not_logged_in_skips_sync(self, api_client, http):
        c = _controller(remote_sync=RemoteSync(api_client))
        c.start()
        c.submit()
        assert http.calls == []
        assert c.sync_status == "skipped"

    def test_disposed_session_ignores_late_callback(self, api_client, credentials):
        credentials.save("tok", {"name": "A"})
        gate = threading.Event()

        class SlowSession:
            def request(self, *args, **kwargs):
                gate.wait(2)
                return FakeResponse(200, {})

        api_client._session = SlowSession()
        sync = RemoteSync(api_client)
        c = _controller(remote_sync=sync)
        c.start()
        c.submit()
        c.dispose()
        gate.set()
        sync.shutdown(wait=True)
        assert c.sync_status == "pending"
