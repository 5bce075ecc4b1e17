import os

# Base directory
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Paths
STATIC_DIR = os.path.join(BASE_DIR, "static")
LOG_FILE = os.getenv("NEET_LOG_FILE", os.path.join(BASE_DIR, "launch.log"))
CORPUS_FILE = os.getenv(
    "NEET_CORPUS_FILE",
    os.path.join(BASE_DIR, "neet_mock_test", "data", "sample_corpus.json"),
)
CREDENTIAL_FILE = os.getenv(
    "NEET_CREDENTIAL_FILE",
    os.path.join(os.path.expanduser("~"), ".neet_mock_test_auth.json"),
)

# Local server
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "0"))  # 0 picks a free port
SERVER_START_TIMEOUT = 15.0

# Persistence service
API_BASE_URL = os.getenv("NEET_API_URL", "http://localhost:5000/api")
API_TIMEOUT = float(os.getenv("NEET_API_TIMEOUT", "10"))

# Session countdown
TICK_INTERVAL = 1.0  # seconds per countdown tick
