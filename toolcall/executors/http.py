"""JSON-RPC over HTTP tool executor.

Transport failures never raise: they come back as error results whose
text the ErrorClassifier recognizes (timed out / connection / rate limit).
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from toolcall import config
from toolcall.models import ToolContent, ToolInvocationResult

logger = logging.getLogger(__name__)


class HttpToolExecutor:
    """Calls ``tools/call`` on a single tool server.

    Example:
        executor = HttpToolExecutor("http://localhost:8931/rpc")
        result = await executor.call_tool("lookup", {"q": "python"})

    """

    def __init__(
        self,
        url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.url = url
        self.timeout = config.HTTP_TIMEOUT if timeout is None else timeout
        self._transport = transport
        self._headers = {"User-Agent": f"toolcall/{config.VERSION}", **(headers or {})}
        self._ids = itertools.count(1)

    def _build_payload(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context_id: Any,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"name": tool_name, "arguments": arguments}
        if context_id is not None:
            params["_meta"] = {"contextId": str(context_id)}
        return {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "tools/call",
            "params": params,
        }

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        context_id: Any = None,
    ) -> ToolInvocationResult:
        payload = self._build_payload(tool_name, arguments, context_id)
        logger.info("Calling tool %s at %s", tool_name, self.url)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers=self._headers,
            ) as client:
                resp = await client.post(self.url, json=payload)
                if resp.status_code == 429:
                    return _error(tool_name, "rate limit exceeded (HTTP 429)")
                resp.raise_for_status()
                body = resp.json()
        except httpx.TimeoutException:
            logger.warning("Tool %s timed out after %ss", tool_name, self.timeout)
            return _error(tool_name, f"request timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            logger.warning("Tool %s returned HTTP %s", tool_name, e.response.status_code)
            return _error(tool_name, f"server responded with HTTP {e.response.status_code}")
        except httpx.TransportError as e:
            logger.warning("Tool %s connection failed: %s", tool_name, e)
            return _error(tool_name, f"connection failed: {e}")
        except ValueError as e:
            # Body was not JSON
            return _error(tool_name, f"malformed response: {e}")

        return _parse_response(tool_name, body)


def _error(tool_name: str, message: str) -> ToolInvocationResult:
    return ToolInvocationResult.text_result(
        f"Error calling tool '{tool_name}': {message}", is_error=True
    )


def _parse_response(tool_name: str, body: Any) -> ToolInvocationResult:
    """Map a JSON-RPC response onto a ToolInvocationResult."""
    if not isinstance(body, dict):
        return _error(tool_name, "malformed response: expected a JSON object")

    if body.get("error") is not None:
        error = body["error"]
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        return _error(tool_name, message)

    result = body.get("result")
    if not isinstance(result, dict):
        return _error(tool_name, "malformed response: missing result")

    content = []
    for item in result.get("content") or []:
        if isinstance(item, dict):
            text = item.get("text")
            content.append(
                ToolContent(
                    text=None if text is None else str(text),
                    type=str(item.get("type", "text")),
                )
            )
    return ToolInvocationResult(content=content, is_error=bool(result.get("isError", False)))
