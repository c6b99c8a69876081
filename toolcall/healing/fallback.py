"""User-facing rendering of tool errors and self-healed results.

Creates display text when a tool call cannot complete cleanly:
- Classified errors with a recovery suggestion and retry marker
- Generic exceptions as a fixed JSON payload
- Self-healed partial results with explanation and suggestions
"""

from __future__ import annotations

import json
import logging

from toolcall.healing.classifier import ToolCallError
from toolcall.healing.extractor import PartialResultExtractor, SelfHealedResult
from toolcall.models import ToolInvocationResult

logger = logging.getLogger(__name__)

# Partial data longer than this is cut for display
MAX_DISPLAY_DATA = 5000


class FallbackHandler:
    """Formats failures and partial results for display.

    Example:
        handler = FallbackHandler()
        text = handler.format_error(error, attempt_number=2)
        healed = handler.process_with_self_healing(result, "search::lookup")

    """

    def __init__(self, extractor: PartialResultExtractor | None = None):
        self.extractor = extractor or PartialResultExtractor()

    def format_error(self, error: ToolCallError, attempt_number: int | None = None) -> str:
        """Render a classified error: description, suggestion, retry marker.

        Args:
            error: Classified error
            attempt_number: Attempt the error occurred on, if known

        Returns:
            Display string

        """
        message = "⚠️ Tool Error"
        if attempt_number is not None:
            message += f" (Attempt {attempt_number})"
        message += "\n\n"

        message += error.description

        if error.recovery_suggestion:
            message += f"\n\n💡 Suggestion: {error.recovery_suggestion}"

        if error.is_retryable:
            message += "\n\n🔄 This error may be temporary. Retry available."

        logger.warning("ToolCallError: %r", error)
        return message

    def format_tool_error_result(
        self,
        error: BaseException,
        attempt_number: int | None = None,
    ) -> str:
        """Render any exception raised around a tool call.

        ToolCallError gets the full error rendering; anything else becomes
        a fixed, non-retryable JSON payload.
        """
        if isinstance(error, ToolCallError):
            return self.format_error(error, attempt_number)

        return json.dumps(
            {
                "error": "Tool execution failed",
                "message": str(error),
                "type": "execution_error",
                "retryable": False,
            },
            indent=2,
            ensure_ascii=False,
        )

    def format_self_healed_result(self, healed: SelfHealedResult, tool_name: str) -> str:
        """Render a self-healed result as markdown."""
        output = "## Partial Results Available\n\n"
        output += f"The `{tool_name}` tool encountered an issue but recovered some data.\n\n"
        output += healed.explanation

        if healed.suggestions:
            output += "\n💡 **Suggestions:**\n"
            for suggestion in healed.suggestions:
                output += f"  • {suggestion}\n"

        if healed.partial_data is not None:
            output += "\n---\n\n### Retrieved Data\n\n"
            data = healed.partial_data
            if len(data) > MAX_DISPLAY_DATA:
                output += (
                    data[:MAX_DISPLAY_DATA]
                    + f"\n\n*[Showing first {MAX_DISPLAY_DATA} characters]*"
                )
            else:
                output += data

        return output

    def process_with_self_healing(
        self,
        result: ToolInvocationResult,
        tool_name: str,
    ) -> ToolInvocationResult:
        """Turn a failed result into a partial success when possible.

        Returns:
            The original result if it succeeded or nothing usable was found,
            otherwise a non-error result flagged was_self_healed

        """
        if not result.is_error:
            return result

        healed = self.extractor.extract(result, tool_name)
        if healed is None or not healed.can_continue:
            return result

        logger.info(
            "Self-healing recovered partial results for %s: %d parts",
            tool_name,
            len(healed.successful_parts),
        )
        return ToolInvocationResult.text_result(
            self.format_self_healed_result(healed, tool_name),
            is_error=False,
            was_self_healed=True,
        )
