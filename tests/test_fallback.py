"""Tests for error and partial-result rendering."""

import json

from toolcall.healing.classifier import ErrorKind, ToolCallError
from toolcall.healing.extractor import SelfHealedResult
from toolcall.healing.fallback import MAX_DISPLAY_DATA, FallbackHandler
from toolcall.models import ToolContent, ToolInvocationResult


# ============ format_error Tests ============

def test_format_error_retryable():
    """Retryable errors get attempt number, suggestion and retry marker."""
    handler = FallbackHandler()
    text = handler.format_error(ToolCallError(ErrorKind.TIMEOUT, "search::lookup"), 2)

    assert text.startswith("⚠️ Tool Error (Attempt 2)\n\n")
    assert "timed out" in text
    assert "💡 Suggestion:" in text
    assert text.endswith("🔄 This error may be temporary. Retry available.")


def test_format_error_permanent():
    handler = FallbackHandler()
    text = handler.format_error(ToolCallError(ErrorKind.TOOL_NOT_FOUND, "search::lookup"))

    assert text.startswith("⚠️ Tool Error\n\n")
    assert "search::lookup" in text
    assert "Retry available" not in text


def test_format_tool_error_result_generic_exception():
    """Non-tool exceptions become a fixed JSON payload."""
    payload = json.loads(FallbackHandler().format_tool_error_result(RuntimeError("kaboom")))

    assert payload == {
        "error": "Tool execution failed",
        "message": "kaboom",
        "type": "execution_error",
        "retryable": False,
    }


def test_format_tool_error_result_tool_error():
    text = FallbackHandler().format_tool_error_result(
        ToolCallError(ErrorKind.NETWORK_ERROR, "t"), attempt_number=3
    )
    assert "(Attempt 3)" in text


# ============ format_self_healed_result Tests ============

def test_format_self_healed_result_sections():
    healed = SelfHealedResult(
        partial_data="row 1\nrow 2",
        successful_parts=["Found 2 lines of data"],
        failed_parts=["Error: boom..."],
        explanation="✓ **What worked:**\n  • Found 2 lines of data\n",
        can_continue=True,
        suggestions=["Check your internet connection"],
    )

    text = FallbackHandler().format_self_healed_result(healed, "search::lookup")

    assert text.startswith("## Partial Results Available\n\n")
    assert "`search::lookup`" in text
    assert "✓ **What worked:**" in text
    assert "💡 **Suggestions:**\n  • Check your internet connection\n" in text
    assert text.endswith("### Retrieved Data\n\nrow 1\nrow 2")


def test_format_self_healed_result_caps_data():
    healed = SelfHealedResult(partial_data="x" * (MAX_DISPLAY_DATA + 10), can_continue=True)

    text = FallbackHandler().format_self_healed_result(healed, "t")

    assert "x" * MAX_DISPLAY_DATA in text
    assert "x" * (MAX_DISPLAY_DATA + 1) not in text
    assert text.endswith(f"*[Showing first {MAX_DISPLAY_DATA} characters]*")


def test_format_self_healed_result_without_data():
    text = FallbackHandler().format_self_healed_result(SelfHealedResult(), "t")
    assert "Retrieved Data" not in text
    assert "Suggestions" not in text


# ============ process_with_self_healing Tests ============

def test_process_passes_success_through():
    result = ToolInvocationResult.text_result("all good")
    assert FallbackHandler().process_with_self_healing(result, "t") is result


def test_process_keeps_unusable_error():
    result = ToolInvocationResult.text_result("Error: boom", is_error=True)
    assert FallbackHandler().process_with_self_healing(result, "t") is result


def test_process_heals_partial_result():
    """Usable partial data turns the error into a flagged success."""
    result = ToolInvocationResult(
        content=[ToolContent(text="partial result data"), ToolContent(text="[truncated]")],
        is_error=True,
    )

    healed = FallbackHandler().process_with_self_healing(result, "search::lookup")

    assert healed.is_error is False
    assert healed.was_self_healed is True
    assert len(healed.content) == 1
    text = healed.joined_text()
    assert "## Partial Results Available" in text
    assert text.endswith("partial result data")
