"""
api/routes.py: FastAPI endpoints
"""

import asyncio
import re
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, field_validator

import api.session as session
from neet_mock_test.models.result_model import QuestionOutcome
from neet_mock_test.models.test_config import TestConfig, TestMode
from neet_mock_test.services.api_client import AuthError, NetworkError
from neet_mock_test.services.results_analyzer import ResultsAnalyzer, summarize_history
from neet_mock_test.services.session_builder import ConfigError
from neet_mock_test.services.session_controller import SessionController

router = APIRouter()

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# ── Pydantic request bodies ──────────────────────────────────────────────────

class StartTestBody(BaseModel):
    mode: TestMode = TestMode.CUSTOM
    chapters: list[str] = []

class AnswerBody(BaseModel):
    option_index: int

class NavigateBody(BaseModel):
    index: int = 0

class LoginBody(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not _EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v

class RegisterBody(LoginBody):
    name: str = Field(..., min_length=1)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()


# ── Helpers ──────────────────────────────────────────────────────────────────

def _sid(request: Request) -> str:
    return request.state.session_id


def _controller(request: Request) -> SessionController:
    controller: Optional[SessionController] = session.get(_sid(request), "controller")
    if controller is None:
        raise HTTPException(status_code=404, detail="No test session.")
    return controller


def _completed_analyzer(request: Request) -> ResultsAnalyzer:
    controller = _controller(request)
    if controller.result is None:
        raise HTTPException(status_code=400, detail="The test has not been submitted yet.")
    return ResultsAnalyzer(controller.result)


def _outcome_to_dict(o: QuestionOutcome) -> dict:
    q = o.question
    return {
        "position": o.position,
        "id": q.id,
        "subject": q.subject,
        "chapter": q.chapter,
        "year": q.year,
        "question": q.question,
        "selected": o.selected,
        "correct": q.correct,
        "is_attempted": o.is_attempted,
        "is_correct": o.is_correct,
    }


def _op_response(controller: SessionController, applied: bool) -> dict:
    return {"ok": applied, "state": controller.snapshot()}


def _start(request: Request, config: TestConfig) -> SessionController:
    sid = _sid(request)
    try:
        controller = SessionController.create(
            config,
            request.app.state.corpus,
            remote_sync=request.app.state.remote_sync,
            tick_interval=request.app.state.tick_interval,
            is_current=session.is_current(sid),
        )
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    session.replace_controller(sid, controller, config)
    controller.start()
    return controller


# ── Corpus ───────────────────────────────────────────────────────────────────

@router.get("/api/subjects")
async def list_subjects(request: Request):
    corpus = request.app.state.corpus
    return {
        "subjects": [
            {
                "key": s.key,
                "name": s.name,
                "icon": s.icon,
                "chapters": corpus.chapter_counts(s.key),
            }
            for s in corpus.subjects()
        ]
    }


@router.get("/api/chapters")
async def list_chapters(request: Request, subject: Optional[str] = None, search: Optional[str] = None):
    return {"chapters": request.app.state.corpus.chapters(subject, search)}


@router.get("/api/corpus-stats")
async def corpus_stats(request: Request):
    corpus = request.app.state.corpus
    return {
        "total": corpus.total_count(),
        "subjects": corpus.subject_counts(),
        "years": {str(y): c for y, c in corpus.year_counts().items()},
    }


# ── Test session ─────────────────────────────────────────────────────────────

@router.post("/api/start-test")
async def start_test(request: Request, body: StartTestBody):
    controller = _start(request, TestConfig(mode=body.mode, chapters=body.chapters))
    return {
        "ok": True,
        "session_id": controller.session_id,
        "total": controller.total,
        "time_budget": controller.time_budget,
    }


@router.post("/api/retry-test")
async def retry_test(request: Request):
    config: Optional[TestConfig] = session.get(_sid(request), "config")
    if config is None:
        raise HTTPException(status_code=400, detail="No previous test to retry.")
    controller = _start(request, config)
    return {"ok": True, "session_id": controller.session_id, "total": controller.total}


@router.get("/api/test-state")
async def test_state(request: Request):
    return _controller(request).snapshot()


@router.get("/api/question/{index}")
async def get_question(request: Request, index: int):
    view = _controller(request).question_view(index)
    if view is None:
        raise HTTPException(status_code=404, detail="Question not found.")
    return view


@router.post("/api/answer")
async def answer(request: Request, body: AnswerBody):
    controller = _controller(request)
    return _op_response(controller, controller.answer(body.option_index))


@router.post("/api/clear-answer")
async def clear_answer(request: Request):
    controller = _controller(request)
    return _op_response(controller, controller.clear_answer())


@router.post("/api/toggle-mark")
async def toggle_mark(request: Request):
    controller = _controller(request)
    return _op_response(controller, controller.toggle_mark())


@router.post("/api/navigate")
async def navigate(request: Request, body: NavigateBody):
    controller = _controller(request)
    return _op_response(controller, controller.go_to(body.index))


@router.post("/api/next")
async def next_question(request: Request):
    controller = _controller(request)
    return _op_response(controller, controller.next())


@router.post("/api/prev")
async def prev_question(request: Request):
    controller = _controller(request)
    return _op_response(controller, controller.prev())


@router.post("/api/pause")
async def pause(request: Request):
    controller = _controller(request)
    return _op_response(controller, controller.pause())


@router.post("/api/resume")
async def resume(request: Request):
    controller = _controller(request)
    return _op_response(controller, controller.resume())


@router.post("/api/submit-test")
async def submit_test(request: Request):
    controller = _controller(request)
    result = controller.submit()
    if result is None:
        raise HTTPException(status_code=400, detail="The test has not started.")
    return {"ok": True, "summary": result.summary.model_dump()}


# ── Results ──────────────────────────────────────────────────────────────────

@router.get("/api/results")
async def get_results(
    request: Request,
    subject: Optional[str] = None,
    incorrect_only: bool = False,
):
    analyzer = _completed_analyzer(request)
    result = analyzer.result
    return {
        "summary": result.summary.model_dump(),
        "grade": analyzer.grade(),
        "subjects": [s.model_dump() for s in result.subjects],
        "questions": [_outcome_to_dict(o) for o in analyzer.filter(subject, incorrect_only)],
        "sync_status": _controller(request).sync_status,
    }


@router.get("/api/results/{position}")
async def get_result_question(request: Request, position: int):
    analyzer = _completed_analyzer(request)
    try:
        return analyzer.expand(position).model_dump()
    except KeyError:
        raise HTTPException(status_code=404, detail="Question not found.")


# ── Auth / history (proxied to the persistence service) ──────────────────────

@router.post("/api/auth/register")
async def register(request: Request, body: RegisterBody):
    client = request.app.state.api_client
    try:
        data = await asyncio.to_thread(client.register, body.name, body.email, body.password)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except NetworkError as e:
        raise HTTPException(status_code=e.status_code or 503, detail=str(e))
    return {"ok": True, "user": {k: data.get(k) for k in ("name", "email", "role")}}


@router.post("/api/auth/login")
async def login(request: Request, body: LoginBody):
    client = request.app.state.api_client
    try:
        data = await asyncio.to_thread(client.login, body.email, body.password)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except NetworkError as e:
        raise HTTPException(status_code=e.status_code or 503, detail=str(e))
    return {"ok": True, "user": {k: data.get(k) for k in ("name", "email", "role")}}


@router.post("/api/auth/logout")
async def logout(request: Request):
    request.app.state.api_client.logout()
    return {"ok": True}


@router.get("/api/auth/profile")
async def profile(request: Request):
    client = request.app.state.api_client
    try:
        return await asyncio.to_thread(client.profile)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except NetworkError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/api/history")
async def history(request: Request, page: int = 1, limit: int = 10):
    client = request.app.state.api_client
    try:
        data = await asyncio.to_thread(client.history, page, limit)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except NetworkError:
        raise HTTPException(status_code=503, detail="Failed to load test history.")
    entries = data.get("history", [])
    pagination = data.get("pagination", {"page": page, "pages": 1, "total": len(entries)})
    return {
        "history": entries,
        "pagination": pagination,
        "stats": summarize_history(entries, pagination.get("total")),
    }


@router.post("/api/reset")
async def reset_session(request: Request):
    session.reset(_sid(request))
    return {"ok": True}
