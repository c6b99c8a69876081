"""Retry policies: exponential backoff with jitter, overridable per tool."""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

from toolcall import config

logger = logging.getLogger(__name__)

# Lower bound on any computed delay, so negative jitter never yields a zero wait
MIN_DELAY = 0.1


@dataclass(frozen=True)
class RetryPolicy:
    """Retry limits and backoff parameters.

    Attributes:
        max_retries: Retries allowed after the first attempt
        base_delay: Delay before the first retry (seconds)
        max_delay: Cap on the exponential delay (seconds)
        backoff_multiplier: Growth factor per attempt
        jitter_factor: Relative jitter, 0.1 means +/-10%

    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_factor: float = 0.1

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay <= 0:
            raise ValueError(f"base_delay must be > 0, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            )
        if self.backoff_multiplier < 1:
            raise ValueError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            )
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError(f"jitter_factor must be in [0, 1], got {self.jitter_factor}")

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        """Build the process-wide default from environment configuration."""
        return cls(
            max_retries=config.MAX_RETRIES,
            base_delay=config.BASE_DELAY,
            max_delay=config.MAX_DELAY,
            backoff_multiplier=config.BACKOFF_MULTIPLIER,
            jitter_factor=config.JITTER_FACTOR,
        )

    def capped_delay(self, attempt: int) -> float:
        """Exponential delay for an attempt before jitter is applied."""
        exponential = self.base_delay * (self.backoff_multiplier**attempt)
        return min(exponential, self.max_delay)

    def delay_for_attempt(self, attempt: int) -> float:
        """Delay before a retry.

        Args:
            attempt: 0-based index; 0 is the wait after the first failure

        Returns:
            Delay in seconds, never below MIN_DELAY

        """
        capped = self.capped_delay(attempt)
        # Symmetric jitter of +/- jitter_factor around the capped delay
        jitter = capped * self.jitter_factor * random.uniform(-1, 1)
        return max(MIN_DELAY, capped + jitter)


# Expected type of each RetryPolicy field when loaded from YAML
_FIELD_TYPES = {
    "max_retries": int,
    "base_delay": float,
    "max_delay": float,
    "backoff_multiplier": float,
    "jitter_factor": float,
}


def _coerce_field(tool_name: str, key: str, value: object) -> int | float:
    """Check a YAML override value; ints are accepted for float fields."""
    expected = _FIELD_TYPES[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(
            f"Retry policy '{key}' for '{tool_name}' must be a number, got {value!r}"
        )
    if expected is int:
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(
                f"Retry policy '{key}' for '{tool_name}' must be an integer, got {value!r}"
            )
        return int(value)
    return float(value)


class RetryPolicyRegistry:
    """Default policy plus per-tool overrides keyed by exact tool name.

    Overrides are written at configuration time and read on every call,
    so a single lock around the dict is enough.
    """

    def __init__(self, default: RetryPolicy | None = None):
        self.default = default or RetryPolicy()
        self._overrides: dict[str, RetryPolicy] = {}
        self._lock = threading.Lock()

    def set_policy(self, tool_name: str, policy: RetryPolicy) -> None:
        """Register a custom policy for a specific tool."""
        with self._lock:
            self._overrides[tool_name] = policy

    def remove_policy(self, tool_name: str) -> None:
        with self._lock:
            self._overrides.pop(tool_name, None)

    def policy_for(self, tool_name: str) -> RetryPolicy:
        """Policy for a tool, falling back to the default."""
        with self._lock:
            return self._overrides.get(tool_name, self.default)

    def overrides(self) -> dict[str, RetryPolicy]:
        with self._lock:
            return dict(self._overrides)

    def load_overrides(self, path: str | Path) -> int:
        """Load per-tool overrides from a YAML file.

        Expected shape::

            tools:
              search::lookup:
                max_retries: 5
                base_delay: 0.5

        Keys missing from an entry inherit the default policy.

        Returns:
            Number of overrides registered

        """
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping with a 'tools' key")
        tools = data.get("tools") or {}
        if not isinstance(tools, dict):
            raise ValueError(f"'tools' in {path} must be a mapping")

        count = 0
        for tool_name, values in tools.items():
            values = values or {}
            if not isinstance(values, dict):
                raise ValueError(f"Retry policy for '{tool_name}' must be a mapping")
            unknown = {str(key) for key in values} - set(_FIELD_TYPES)
            if unknown:
                raise ValueError(
                    f"Unknown retry policy keys for '{tool_name}': {', '.join(sorted(unknown))}"
                )
            coerced = {
                key: _coerce_field(tool_name, key, value) for key, value in values.items()
            }
            try:
                policy = replace(self.default, **coerced)
            except ValueError as e:
                raise ValueError(f"Invalid retry policy for '{tool_name}': {e}") from e
            self.set_policy(str(tool_name), policy)
            count += 1

        logger.info("Loaded %d retry policy override(s) from %s", count, path)
        return count

    @classmethod
    def from_config(cls) -> "RetryPolicyRegistry":
        """Registry with the env default and, if configured, the YAML overrides."""
        registry = cls(RetryPolicy.from_config())
        if config.POLICY_FILE:
            registry.load_overrides(config.POLICY_FILE)
        return registry
