"""
main.py: NEET Mock Test desktop entry point
"""

import os
import socket
import sys
import time
import threading
import logging
import traceback
import webbrowser

# ── Package path (must run first) ────────────────────────────────────────────
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import BASE_DIR, LOG_FILE, DEFAULT_HOST, DEFAULT_PORT, SERVER_START_TIMEOUT

# ── Logging ──────────────────────────────────────────────────────────────────
try:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )
except PermissionError:
    # log file locked by another process: console only
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

# ── Server / network helpers ─────────────────────────────────────────────────

def _find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((DEFAULT_HOST, 0))
        return s.getsockname()[1]

def _wait_for_server(port: int, timeout: float = SERVER_START_TIMEOUT) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection((DEFAULT_HOST, port), timeout=0.5):
                return True
        except OSError:
            time.sleep(0.1)
    return False

def _start_server(port: int) -> None:
    try:
        import uvicorn
        from api.app import create_app
        app = create_app()
        profile = app.state.api_client.validate_token()
        if profile:
            logger.info(f"Logged in as {profile.get('email', '?')}")
        logger.info(f"Starting uvicorn on port {port}")
        uvicorn.run(app, host=DEFAULT_HOST, port=port, log_level="error")
    except Exception:
        logger.error(f"Server error:\n{traceback.format_exc()}")

# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("=== NEET Mock Test started ===")
    os.chdir(BASE_DIR)

    port = DEFAULT_PORT or _find_free_port()
    server_thread = threading.Thread(target=_start_server, args=(port,), daemon=True)
    server_thread.start()

    if _wait_for_server(port):
        logger.info("Server ready, opening the browser.")
        webbrowser.open(f"http://{DEFAULT_HOST}:{port}")

        # keep the main thread alive
        try:
            while True:
                time.sleep(10)
        except KeyboardInterrupt:
            logger.info("Stopped by user.")
    else:
        logger.error("Server did not start in time. Check for a stale process holding the port.")
        sys.exit(1)
