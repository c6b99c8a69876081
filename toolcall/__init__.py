"""toolcall: resilient tool invocation engine.

This package features:
- Error classification of failed tool output (permanent vs transient)
- Exponential backoff with jitter, overridable per tool
- Automatic recovery (restart stopped tool servers) before retries
- Self-healing extraction of partial results from final failures
"""

from toolcall.config import VERSION

__all__ = ["VERSION"]
