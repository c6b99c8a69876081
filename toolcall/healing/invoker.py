"""Resilient tool invocation: retry loop, recovery and self-healing.

Orchestrates classification, retry policy, retry state and partial result
extraction around a tool executor:
1. Call the tool; return on success
2. Classify the failure and record it against this call's id
3. Stop on permanent errors or when the policy is exhausted
4. Run the recovery hook, back off, retry
5. On final failure, try to salvage partial results
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Hashable

from toolcall import activity_log
from toolcall.executors.base import ToolExecutor
from toolcall.executors.manager import ServerManager
from toolcall.healing.classifier import ErrorClassifier, ToolCallError
from toolcall.healing.fallback import FallbackHandler
from toolcall.healing.policy import RetryPolicy, RetryPolicyRegistry
from toolcall.healing.recovery import RecoveryHook
from toolcall.healing.state import RetryStateTracker
from toolcall.models import RetryableToolCall, ToolInvocationRequest, ToolInvocationResult
from toolcall.tool_runs import ToolRun, ToolRunStore

logger = logging.getLogger(__name__)

# Called before each attempt with (attempt_number, delay_before_attempt)
OnAttempt = Callable[[int, "float | None"], Any]


class ResilientInvoker:
    """Runs tool calls with retries, recovery and self-healing.

    Each logical call gets a fresh invocation id; its retry state lives in
    this invoker's tracker only for the duration of the call.

    Example:
        invoker = ResilientInvoker(executor=manager, recovery=RecoveryHook(manager))
        result = await invoker.execute_with_retry(
            "search::lookup",
            {"q": "python"},
            context_id=conversation_id,
            on_attempt=lambda n, delay: print(n, delay),
        )

    """

    def __init__(
        self,
        executor: ToolExecutor,
        policies: RetryPolicyRegistry | None = None,
        tracker: RetryStateTracker | None = None,
        classifier: ErrorClassifier | None = None,
        recovery: RecoveryHook | None = None,
        fallback: FallbackHandler | None = None,
        tool_runs: ToolRunStore | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.executor = executor
        self.policies = policies or RetryPolicyRegistry()
        self.tracker = tracker or RetryStateTracker()
        self.classifier = classifier or ErrorClassifier()
        self.recovery = recovery
        self.fallback = fallback or FallbackHandler()
        self.tool_runs = tool_runs
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        manager: ServerManager | None = None,
        tool_runs: ToolRunStore | None = None,
    ) -> "ResilientInvoker":
        """Invoker wired to a ServerManager with env/YAML configuration."""
        manager = manager or ServerManager.from_config()
        return cls(
            executor=manager,
            policies=RetryPolicyRegistry.from_config(),
            recovery=RecoveryHook(manager),
            tool_runs=tool_runs,
        )

    async def execute_with_retry(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context_id: Any = None,
        policy: RetryPolicy | None = None,
        on_attempt: OnAttempt | None = None,
    ) -> ToolInvocationResult:
        """Execute a tool call with automatic retry.

        Args:
            tool_name: Tool to call
            arguments: Tool arguments, reused for every attempt
            context_id: Opaque conversation/session handle
            policy: Override the registered policy for this call
            on_attempt: Observer called before each attempt with
                (attempt_number, delay); delay is None for the first attempt

        Returns:
            The first successful result, a self-healed partial result, or
            the last error result

        """
        invocation_id = uuid.uuid4()
        retry_policy = policy or self.policies.policy_for(tool_name)
        max_attempts = retry_policy.max_retries + 1
        last_result: ToolInvocationResult | None = None
        attempts = 0
        started = time.monotonic()

        # State is cleared on every exit path, including cancellation
        try:
            for attempt in range(max_attempts):
                if attempt > 0:
                    delay = retry_policy.delay_for_attempt(attempt - 1)
                    await _notify(on_attempt, attempt + 1, delay)
                    activity_log.log_retry_scheduled(tool_name, delay)
                    await self._sleep(delay)
                else:
                    await _notify(on_attempt, 1, None)

                attempts = attempt + 1
                activity_log.log_attempt(tool_name, attempts, max_attempts)
                last_result = await self.executor.call_tool(tool_name, arguments, context_id)

                if not last_result.is_error:
                    activity_log.log_attempt_result(tool_name, attempts)
                    self.tracker.clear_retry_state(invocation_id)
                    return await self._finish(
                        tool_name, arguments, context_id, last_result, attempts, started
                    )

                error = self.classifier.classify(last_result, tool_name)
                activity_log.log_attempt_result(tool_name, attempts, error.kind.name)
                state = self.tracker.track_retry(invocation_id, tool_name, arguments, error)

                should_retry, _ = self.tracker.should_retry(invocation_id, error, retry_policy)
                if not should_retry or not state.can_retry:
                    logger.info(
                        "Not retrying tool %s after attempt %d: %s (retryable=%s)",
                        tool_name,
                        attempts,
                        error.kind.name,
                        error.is_retryable,
                    )
                    break

                await self._recover(error)

                logger.info(
                    "Retrying tool %s (attempt %d/%d)", tool_name, attempt + 2, max_attempts
                )
        finally:
            self.tracker.clear_retry_state(invocation_id)

        if last_result is None:
            return ToolInvocationResult.text_result(
                f"Tool execution failed after {max_attempts} attempts", is_error=True
            )

        final = self.fallback.process_with_self_healing(last_result, tool_name)
        if final.was_self_healed:
            logger.info("Self-healing succeeded for %s after %d attempts", tool_name, attempts)
            activity_log.log_self_healed(tool_name, attempts)
        return await self._finish(tool_name, arguments, context_id, final, attempts, started)

    async def execute(
        self,
        request: ToolInvocationRequest,
        policy: RetryPolicy | None = None,
        on_attempt: OnAttempt | None = None,
    ) -> ToolInvocationResult:
        """execute_with_retry for a prepared request."""
        return await self.execute_with_retry(
            request.tool_name,
            request.arguments,
            request.context_id,
            policy=policy,
            on_attempt=on_attempt,
        )

    async def retry_call(
        self,
        call: RetryableToolCall,
        on_attempt: OnAttempt | None = None,
    ) -> ToolInvocationResult:
        """Manually retry a previously failed call, updating its record."""
        call.retry_count += 1
        call.is_retrying = True
        logger.info("Retrying tool call: %s (attempt %d)", call.tool_name, call.retry_count + 1)
        try:
            result = await self.execute(call.to_request(), on_attempt=on_attempt)
        finally:
            call.is_retrying = False

        call.last_error = result.joined_text("\n") if result.is_error else None
        return result

    def format_tool_error_result(
        self,
        error: BaseException,
        invocation_id: Hashable | None = None,
    ) -> str:
        """User-facing text for an error, with the attempt number if tracked."""
        attempt_number = None
        if invocation_id is not None and isinstance(error, ToolCallError):
            state = self.tracker.get_retry_state(invocation_id)
            attempt_number = state.attempt_count if state else None
        return self.fallback.format_tool_error_result(error, attempt_number)

    async def _recover(self, error: ToolCallError) -> bool:
        if self.recovery is None:
            return False
        try:
            return await self.recovery.attempt_recovery(error)
        except Exception as e:
            logger.error("Recovery hook failed for %s: %s", error.tool_name, e)
            return False

    async def _finish(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context_id: Any,
        result: ToolInvocationResult,
        attempts: int,
        started: float,
    ) -> ToolInvocationResult:
        activity_log.log_call_end(
            tool_name,
            success=not result.is_error,
            attempts=attempts,
            duration=time.monotonic() - started,
            detail=result.joined_text(" ") if result.is_error else "",
        )
        if self.tool_runs is not None:
            try:
                await self.tool_runs.save_tool_run(
                    ToolRun.from_execution(context_id, tool_name, arguments, result, attempts)
                )
            except Exception as e:
                logger.warning("Could not save tool run for %s: %s", tool_name, e)
        return result


async def _notify(on_attempt: OnAttempt | None, attempt_number: int, delay: float | None) -> None:
    if on_attempt is None:
        return
    outcome = on_attempt(attempt_number, delay)
    if inspect.isawaitable(outcome):
        await outcome
