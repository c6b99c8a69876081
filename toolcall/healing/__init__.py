"""Retry and self-healing engine for tool calls.

Architecture:
    ErrorClassifier → determines error kind and retryability
    RetryPolicy / RetryPolicyRegistry → backoff delays per tool
    RetryStateTracker → attempt bookkeeping per invocation
    RecoveryHook → corrective action before a retry
    PartialResultExtractor → salvages data from a final failure
    FallbackHandler → renders errors and partial results
    ResilientInvoker → orchestrates everything
"""

from toolcall.healing.classifier import ErrorClassifier, ErrorKind, ToolCallError, validate_tool_name
from toolcall.healing.extractor import PartialResultExtractor, SelfHealedResult
from toolcall.healing.fallback import FallbackHandler
from toolcall.healing.invoker import ResilientInvoker
from toolcall.healing.policy import RetryPolicy, RetryPolicyRegistry
from toolcall.healing.recovery import RecoveryHook
from toolcall.healing.state import RetryState, RetryStateTracker

__all__ = [
    "ErrorClassifier",
    "ErrorKind",
    "ToolCallError",
    "validate_tool_name",
    "PartialResultExtractor",
    "SelfHealedResult",
    "FallbackHandler",
    "ResilientInvoker",
    "RetryPolicy",
    "RetryPolicyRegistry",
    "RecoveryHook",
    "RetryState",
    "RetryStateTracker",
]
