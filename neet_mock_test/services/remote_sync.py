"""
services/remote_sync.py

Best-effort, at-most-once transmission of a completed session to the
persistence service. Runs detached on a worker thread; failures are logged and
dropped. The ScoredResult already handed to the caller is never touched.
No retry.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from neet_mock_test.models.result_model import ScoredResult
from neet_mock_test.services.api_client import ApiClient, NetworkError

logger = logging.getLogger(__name__)

_MAX_WORKERS = 2


def build_payload(result: ScoredResult, test_type: str, time_taken: int) -> Dict[str, Any]:
    """
    Redacted submission body: no question text, only outcome fields.
    """
    return {
        "testType": test_type,
        "timeTaken": time_taken,
        "questions": [
            {
                "subject": o.question.subject,
                "chapter": o.question.chapter,
                "userAnswer": o.selected,
                "correctIndex": o.question.correct,
                "isCorrect": bool(o.is_correct),
                "isAttempted": o.is_attempted,
            }
            for o in result.questions
        ],
    }


class RemoteSync:
    def __init__(self, client: ApiClient, executor: Optional[ThreadPoolExecutor] = None):
        self._client = client
        self._executor = executor or ThreadPoolExecutor(max_workers=_MAX_WORKERS, thread_name_prefix="remote-sync")

    def dispatch(
        self,
        session_id: str,
        payload: Dict[str, Any],
        is_current: Optional[Callable[[str], bool]] = None,
        on_complete: Optional[Callable[[str, bool], None]] = None,
    ) -> Optional[Future]:
        """
        Send payload in the background.

        Args:
            session_id:  identity of the completed session.
            payload:     body built by build_payload().
            is_current:  returns False once a newer session has replaced this
                         one; on_complete is then skipped.
            on_complete: called with (session_id, delivered) after the attempt.

        Returns:
            the Future of the attempt, or None when nobody is logged in.
        """
        if not self._client.credentials.is_authenticated:
            logger.debug(f"Session {session_id}: not logged in, submission skipped")
            return None
        return self._executor.submit(self._send, session_id, payload, is_current, on_complete)

    def _send(
        self,
        session_id: str,
        payload: Dict[str, Any],
        is_current: Optional[Callable[[str], bool]],
        on_complete: Optional[Callable[[str, bool], None]],
    ) -> bool:
        delivered = False
        try:
            self._client.submit_test(payload)
            delivered = True
            logger.info(f"Session {session_id}: submitted {len(payload.get('questions', []))} outcomes")
        except NetworkError as e:
            logger.warning(f"Session {session_id}: submission dropped ({e})")
        except Exception:
            logger.exception(f"Session {session_id}: submission failed unexpectedly")

        if on_complete is None:
            return delivered
        if is_current is not None and not is_current(session_id):
            logger.debug(f"Session {session_id}: stale submission callback discarded")
            return delivered
        try:
            on_complete(session_id, delivered)
        except Exception:
            logger.exception(f"Session {session_id}: submission callback failed")
        return delivered

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)
