"""
api/app.py: FastAPI app instance + session middleware + static file serving
"""

import logging
import os
import threading
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from config import CORPUS_FILE, CREDENTIAL_FILE, STATIC_DIR, TICK_INTERVAL
from api.routes import router
import api.session as session
from neet_mock_test.services.api_client import ApiClient, CredentialStore
from neet_mock_test.services.corpus import QuestionCorpus
from neet_mock_test.services.remote_sync import RemoteSync

SESSION_COOKIE = "neet_session"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    # no new submissions after shutdown; one in flight finishes on its worker
    app.state.remote_sync.shutdown()


def create_app(
    corpus: Optional[QuestionCorpus] = None,
    credentials: Optional[CredentialStore] = None,
    api_client: Optional[ApiClient] = None,
    tick_interval: Optional[float] = TICK_INTERVAL,
) -> FastAPI:
    """
    Args:
        corpus:        loaded corpus. Defaults to CORPUS_FILE.
        credentials:   credential store. Defaults to CREDENTIAL_FILE.
        api_client:    persistence client. Defaults to one using credentials.
        tick_interval: countdown interval for new sessions, None for manual ticks.
    """
    app = FastAPI(title="NEET Mock Test", docs_url=None, redoc_url=None, lifespan=_lifespan)

    app.state.corpus = corpus or QuestionCorpus.from_file(CORPUS_FILE)
    if api_client is None:
        api_client = ApiClient(credentials or CredentialStore(CREDENTIAL_FILE))
    app.state.api_client = api_client
    app.state.remote_sync = RemoteSync(api_client)
    app.state.tick_interval = tick_interval

    # CORS (allow any origin, e.g. mobile browsers on the LAN)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Session middleware: read the session id from the cookie, issue one if missing
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=session.SESSION_TTL,
        )
        return response

    app.include_router(router)

    if os.path.isdir(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    # root -> index.html
    @app.get("/")
    async def serve_index():
        index_path = os.path.join(STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    # Periodic cleanup of expired sessions (every 5 minutes)
    def _cleanup_loop():
        while True:
            time.sleep(300)
            removed = session.cleanup_expired()
            if removed:
                logger.info(f"Cleaned up {removed} expired sessions")

    t = threading.Thread(target=_cleanup_loop, daemon=True)
    t.start()

    return app
