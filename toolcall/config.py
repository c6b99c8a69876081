import logging
import os

from dotenv import load_dotenv

load_dotenv()

# Default retry policy (applies to every tool without an override)
MAX_RETRIES = int(os.getenv("TOOLCALL_MAX_RETRIES", "3"))
BASE_DELAY = float(os.getenv("TOOLCALL_BASE_DELAY", "1.0"))
MAX_DELAY = float(os.getenv("TOOLCALL_MAX_DELAY", "30.0"))
BACKOFF_MULTIPLIER = float(os.getenv("TOOLCALL_BACKOFF_MULTIPLIER", "2.0"))
JITTER_FACTOR = float(os.getenv("TOOLCALL_JITTER_FACTOR", "0.1"))  # 10% jitter

# Optional YAML files: per-tool retry overrides and tool server definitions
POLICY_FILE = os.getenv("TOOLCALL_POLICY_FILE", "")
SERVERS_FILE = os.getenv("TOOLCALL_SERVERS_FILE", "")

# HTTP executor request timeout (seconds)
HTTP_TIMEOUT = float(os.getenv("TOOLCALL_HTTP_TIMEOUT", "30.0"))

# Pause taken by the recovery hook before retrying a network error
NETWORK_RECOVERY_PAUSE = float(os.getenv("TOOLCALL_NETWORK_RECOVERY_PAUSE", "0.5"))

# Project root: directory containing toolcall/ package (works from any cwd)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_FILE = os.path.join(PROJECT_ROOT, "logs", "toolcall.log")
DB_PATH = os.getenv("TOOLCALL_DB_PATH", os.path.join(PROJECT_ROOT, "data", "tool_runs.db"))


# Read version from VERSION file
def _get_version() -> str:
    version_file = os.path.join(PROJECT_ROOT, "VERSION")
    try:
        with open(version_file, "r") as f:
            return f.read().strip()
    except FileNotFoundError:
        return "0.0.0"  # Fallback if VERSION file doesn't exist


VERSION = _get_version()


def setup_logging() -> None:
    os.makedirs(os.path.dirname(LOG_FILE), exist_ok=True)
    logging.basicConfig(
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        level=logging.INFO,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(LOG_FILE, encoding="utf-8"),
        ],
    )
