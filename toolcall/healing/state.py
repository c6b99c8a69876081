"""In-flight retry bookkeeping, keyed by invocation id."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Hashable

from toolcall.healing.classifier import ToolCallError
from toolcall.healing.policy import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class RetryState:
    """Retry progress of one logical call.

    attempt_count only ever increases for a given invocation id.
    """

    invocation_id: Hashable
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    attempt_count: int = 0
    last_error: ToolCallError | None = None
    last_attempt_time: float | None = None

    @property
    def can_retry(self) -> bool:
        if self.last_error is None:
            return True
        return self.last_error.is_retryable


class RetryStateTracker:
    """Keyed store of RetryState owned by an invoker.

    Distinct ids never contend; one coarse lock covers the dict.

    Example:
        tracker = RetryStateTracker()
        state = tracker.track_retry(call_id, "search::lookup", {}, error)
        allow, delay = tracker.should_retry(call_id, error, policy)

    """

    def __init__(self):
        self._states: dict[Hashable, RetryState] = {}
        self._lock = threading.Lock()

    def track_retry(
        self,
        invocation_id: Hashable,
        tool_name: str,
        arguments: dict[str, Any],
        error: ToolCallError | None,
    ) -> RetryState:
        """Create or update retry state after a failed attempt.

        Returns:
            A snapshot of the updated state

        """
        with self._lock:
            state = self._states.get(invocation_id)
            if state is None:
                state = RetryState(
                    invocation_id=invocation_id,
                    tool_name=tool_name,
                    arguments=dict(arguments),
                )
                self._states[invocation_id] = state
            state.attempt_count += 1
            state.last_error = error
            state.last_attempt_time = time.time()
            return RetryState(**vars(state))

    def get_retry_state(self, invocation_id: Hashable) -> RetryState | None:
        with self._lock:
            state = self._states.get(invocation_id)
            return RetryState(**vars(state)) if state else None

    def clear_retry_state(self, invocation_id: Hashable) -> None:
        """Drop state on success or abandonment. No-op when absent."""
        with self._lock:
            self._states.pop(invocation_id, None)

    def should_retry(
        self,
        invocation_id: Hashable,
        error: ToolCallError,
        policy: RetryPolicy,
    ) -> tuple[bool, float]:
        """Decide whether another attempt is allowed after a failure.

        attempt_count counts failed attempts, so the retries already taken
        are attempt_count - 1. An untracked id counts as one failure.

        The larger of the error's own suggested delay and the policy
        backoff is used, so an explicit rate-limit wait is never undercut.

        Returns:
            (allow, delay_seconds); (False, 0.0) when not allowed

        """
        if not error.is_retryable:
            return False, 0.0

        with self._lock:
            state = self._states.get(invocation_id)
            failures = state.attempt_count if state else 1

        retries_taken = failures - 1
        if retries_taken >= policy.max_retries:
            return False, 0.0

        delay = max(error.suggested_delay, policy.delay_for_attempt(retries_taken))
        return True, delay

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def __contains__(self, invocation_id: Hashable) -> bool:
        with self._lock:
            return invocation_id in self._states
