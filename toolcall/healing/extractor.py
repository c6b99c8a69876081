"""Partial result extraction from failed tool output.

Heuristics run in a fixed order and all matching ones contribute:
1. Truncation marker: keep the text before truncation
2. Embedded JSON: keep the first flat {...} fragment that parses
3. Line partition: keep non-error lines as data, note error lines
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from toolcall.models import ToolInvocationResult

logger = logging.getLogger(__name__)

TRUNCATION_MARKERS = ("[truncated]", "...truncated")

# First single-level {...} fragment (no nested braces)
_JSON_FRAGMENT = re.compile(r"\{[^{}]*\}")

_ERROR_LINE_KEYWORDS = ("error", "failed", "exception")

MAX_ERROR_LINES = 3
MAX_ERROR_LINE_LENGTH = 100


@dataclass
class SelfHealedResult:
    """Usable data recovered from a failed tool result.

    Attributes:
        partial_data: Recovered text, if any
        successful_parts: Notes on what was recovered
        failed_parts: Notes on what failed
        explanation: Formatted what-worked / what-failed summary
        can_continue: Whether the recovered data is usable on its own
        suggestions: Actionable next steps, in order

    """

    partial_data: str | None = None
    successful_parts: list[str] = field(default_factory=list)
    failed_parts: list[str] = field(default_factory=list)
    explanation: str = ""
    can_continue: bool = False
    suggestions: list[str] = field(default_factory=list)


class PartialResultExtractor:
    """Recovers partial data from a failed tool result.

    Example:
        extractor = PartialResultExtractor()
        healed = extractor.extract(result, "search::lookup")
        if healed and healed.can_continue:
            print(healed.partial_data)

    """

    def extract(self, result: ToolInvocationResult, tool_name: str) -> SelfHealedResult | None:
        """Attempt to extract partial results from a failed tool call.

        Args:
            result: Failed tool result
            tool_name: Tool the result came from

        Returns:
            SelfHealedResult, or None if there is nothing usable

        """
        content = result.joined_text("\n")
        if not content:
            return None

        successful_parts: list[str] = []
        failed_parts: list[str] = []
        partial_data: str | None = None
        can_continue = False

        # Truncation. Later heuristics see the text with markers removed.
        if any(marker in content for marker in TRUNCATION_MARKERS):
            for marker in TRUNCATION_MARKERS:
                content = content.replace(marker, "")
            content = content.strip()
            if content:
                successful_parts.append("Retrieved partial data before truncation")
                partial_data = content
                can_continue = True
            failed_parts.append("Full result was too large and was truncated")

        # Embedded JSON fragment
        match = _JSON_FRAGMENT.search(content)
        if match:
            fragment = match.group(0)
            try:
                json.loads(fragment)
            except ValueError:
                logger.debug("Ignoring unparseable JSON fragment from %s", tool_name)
            else:
                successful_parts.append("Extracted valid JSON fragment")
                partial_data = f"{partial_data}\n{fragment}" if partial_data else fragment
                can_continue = True

        # Error + data lines (some tools return both)
        data_lines: list[str] = []
        error_lines: list[str] = []
        for line in content.split("\n"):
            lower_line = line.lower()
            if any(keyword in lower_line for keyword in _ERROR_LINE_KEYWORDS):
                error_lines.append(line)
            elif line.strip():
                data_lines.append(line)

        if data_lines:
            successful_parts.append(f"Found {len(data_lines)} lines of data")
            partial_data = "\n".join(data_lines)
            can_continue = True

        failed_parts.extend(
            line[:MAX_ERROR_LINE_LENGTH] + "..." for line in error_lines[:MAX_ERROR_LINES]
        )

        if not (can_continue or successful_parts):
            return None

        return SelfHealedResult(
            partial_data=partial_data,
            successful_parts=successful_parts,
            failed_parts=failed_parts,
            explanation=self.build_explanation(successful_parts, failed_parts),
            can_continue=can_continue,
            suggestions=self.build_suggestions(failed_parts, partial_data is not None),
        )

    def build_explanation(self, successful_parts: list[str], failed_parts: list[str]) -> str:
        """Human-readable summary of what worked and what failed."""
        explanation = ""

        if successful_parts:
            explanation += "✓ **What worked:**\n"
            for part in successful_parts:
                explanation += f"  • {part}\n"

        if failed_parts:
            explanation += "\n✗ **What failed:**\n"
            for part in failed_parts[:MAX_ERROR_LINES]:
                explanation += f"  • {part}\n"

        return explanation

    def build_suggestions(self, failed_parts: list[str], has_partial_data: bool) -> list[str]:
        suggestions: list[str] = []
        failure_text = " ".join(failed_parts).lower()

        if "timeout" in failure_text:
            suggestions.append("Try a more specific query to reduce response size")
            suggestions.append("Break the request into smaller parts")

        if "truncat" in failure_text:
            suggestions.append("Request smaller chunks of data")
            suggestions.append("Use pagination if the tool supports it")

        if "rate" in failure_text or "limit" in failure_text:
            suggestions.append("Wait a few seconds before retrying")
            suggestions.append("Reduce request frequency")

        if "auth" in failure_text or "permission" in failure_text:
            suggestions.append("Check API credentials in settings")
            suggestions.append("Verify the tool has required permissions")

        if "network" in failure_text or "connection" in failure_text:
            suggestions.append("Check your internet connection")
            suggestions.append("The service may be temporarily unavailable")

        if has_partial_data:
            suggestions.insert(
                0, "Review the partial results below - they may contain useful information"
            )

        return list(dict.fromkeys(suggestions))
