"""Human-readable activity log of tool calls.

A separate log that shows what the retry engine is doing, one line per
event, in a format that's easy to scan.

Format example:
  2026-02-27 20:09:00 | 🔧 search::lookup attempt 1
  2026-02-27 20:09:01 | ❌ search::lookup attempt 1 → TIMEOUT
  2026-02-27 20:09:01 | 🔄 search::lookup retry in 1.0s
  2026-02-27 20:09:02 | ✅ search::lookup attempt 2 → ok
"""

import os
from datetime import datetime

from toolcall.config import PROJECT_ROOT

ACTIVITY_LOG_FILE = os.path.join(PROJECT_ROOT, "logs", "activity.log")


def _timestamp() -> str:
    """Return current timestamp in readable format."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _truncate(text: str, max_len: int = 500) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) > max_len:
        return text[:max_len] + "…"
    return text


def _write(line: str) -> None:
    os.makedirs(os.path.dirname(ACTIVITY_LOG_FILE), exist_ok=True)
    with open(ACTIVITY_LOG_FILE, "a", encoding="utf-8") as f:
        f.write(f"{_timestamp()} | {line}\n")


def log_attempt(tool_name: str, attempt: int, max_attempts: int) -> None:
    """Log the start of an attempt."""
    _write(f"🔧 {tool_name} attempt {attempt}/{max_attempts}")


def log_attempt_result(tool_name: str, attempt: int, error_kind: str | None = None) -> None:
    """Log an attempt outcome; error_kind is None on success."""
    if error_kind is None:
        _write(f"✅ {tool_name} attempt {attempt} → ok")
    else:
        _write(f"❌ {tool_name} attempt {attempt} → {error_kind}")


def log_retry_scheduled(tool_name: str, delay: float) -> None:
    _write(f"🔄 {tool_name} retry in {delay:.1f}s")


def log_self_healed(tool_name: str, attempts: int) -> None:
    _write(f"🩹 {tool_name} self-healed after {attempts} attempt(s)")


def log_call_end(tool_name: str, success: bool, attempts: int, duration: float, detail: str = "") -> None:
    """Log the final outcome of a logical call."""
    status = "✅" if success else "❌"
    msg = f"{status} {tool_name} END after {attempts} attempt(s) ({duration:.1f}s)"
    if detail:
        msg += f": {_truncate(detail, 200)}"
    _write(msg)


def get_activity_log_tail(n: int = 50) -> str:
    """Get last n lines of activity log."""
    try:
        with open(ACTIVITY_LOG_FILE, encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        return "📝 Activity log is empty (no tool calls yet)"

    tail = lines[-n:] if len(lines) > n else lines
    header = f"📝 Last {len(tail)} of {len(lines)} entries:\n\n"
    return header + "".join(tail)
