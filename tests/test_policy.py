"""Tests for retry policies and the per-tool policy registry."""

from unittest.mock import patch

import pytest

from toolcall import config
from toolcall.healing.policy import MIN_DELAY, RetryPolicy, RetryPolicyRegistry


class TestRetryPolicy:
    """Backoff computation."""

    def test_defaults(self):
        policy = RetryPolicy()

        assert policy.max_retries == 3
        assert policy.base_delay == 1.0
        assert policy.max_delay == 30.0
        assert policy.backoff_multiplier == 2.0
        assert policy.jitter_factor == 0.1

    def test_exponential_without_jitter(self):
        """Delays double per attempt and stop at the cap."""
        policy = RetryPolicy(jitter_factor=0.0)

        assert policy.delay_for_attempt(0) == 1.0
        assert policy.delay_for_attempt(1) == 2.0
        assert policy.delay_for_attempt(2) == 4.0
        assert policy.delay_for_attempt(10) == 30.0

    @pytest.mark.parametrize("attempt", [0, 1, 2, 3, 4, 5, 8, 20])
    def test_jitter_bounds(self, attempt):
        """Delay stays within capped * (1 +/- jitter)."""
        policy = RetryPolicy(jitter_factor=0.25)
        capped = policy.capped_delay(attempt)
        low = max(MIN_DELAY, capped * 0.75)
        high = capped * 1.25

        for _ in range(200):
            assert low <= policy.delay_for_attempt(attempt) <= high

    def test_jitter_extremes(self):
        policy = RetryPolicy(jitter_factor=0.1)

        with patch("toolcall.healing.policy.random.uniform", return_value=-1.0):
            assert policy.delay_for_attempt(1) == pytest.approx(1.8)
        with patch("toolcall.healing.policy.random.uniform", return_value=1.0):
            assert policy.delay_for_attempt(1) == pytest.approx(2.2)

    def test_floor_applies_to_negative_jitter(self):
        """A maximally negative jitter never goes below the floor."""
        policy = RetryPolicy(base_delay=0.1, max_delay=0.1, jitter_factor=1.0)

        with patch("toolcall.healing.policy.random.uniform", return_value=-1.0):
            assert policy.delay_for_attempt(0) == MIN_DELAY

    def test_expected_delay_non_decreasing(self):
        policy = RetryPolicy()
        capped = [policy.capped_delay(i) for i in range(12)]

        assert capped == sorted(capped)
        assert capped[-1] == policy.max_delay

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_retries": -1},
            {"base_delay": 0},
            {"base_delay": 10.0, "max_delay": 5.0},
            {"backoff_multiplier": 0.5},
            {"jitter_factor": 1.5},
            {"jitter_factor": -0.1},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_zero_retries_allowed(self):
        assert RetryPolicy(max_retries=0).max_retries == 0

    def test_from_config(self, monkeypatch):
        monkeypatch.setattr(config, "MAX_RETRIES", 7)
        monkeypatch.setattr(config, "BASE_DELAY", 0.5)
        monkeypatch.setattr(config, "JITTER_FACTOR", 0.0)

        policy = RetryPolicy.from_config()

        assert policy.max_retries == 7
        assert policy.base_delay == 0.5
        assert policy.jitter_factor == 0.0


class TestRetryPolicyRegistry:
    """Per-tool overrides."""

    def test_falls_back_to_default(self):
        registry = RetryPolicyRegistry()
        assert registry.policy_for("search::lookup") is registry.default

    def test_override_exact_match(self):
        registry = RetryPolicyRegistry()
        custom = RetryPolicy(max_retries=10)
        registry.set_policy("search::lookup", custom)

        assert registry.policy_for("search::lookup") is custom
        assert registry.policy_for("search::LOOKUP") is registry.default
        assert registry.policy_for("search") is registry.default

    def test_remove_override(self):
        registry = RetryPolicyRegistry()
        registry.set_policy("t", RetryPolicy(max_retries=1))
        registry.remove_policy("t")
        registry.remove_policy("never-set")

        assert registry.policy_for("t") is registry.default
        assert registry.overrides() == {}

    def test_load_overrides_from_yaml(self, tmp_path):
        path = tmp_path / "policies.yaml"
        path.write_text(
            "tools:\n"
            "  search::lookup:\n"
            "    max_retries: 5\n"
            "    base_delay: 0.5\n"
            "  fs::read: {}\n",
            encoding="utf-8",
        )
        registry = RetryPolicyRegistry(RetryPolicy(max_delay=20.0))

        count = registry.load_overrides(path)

        assert count == 2
        lookup = registry.policy_for("search::lookup")
        assert lookup.max_retries == 5
        assert lookup.base_delay == 0.5
        assert lookup.max_delay == 20.0  # inherited
        assert registry.policy_for("fs::read") == registry.default

    def test_load_overrides_rejects_unknown_keys(self, tmp_path):
        path = tmp_path / "policies.yaml"
        path.write_text("tools:\n  t:\n    retries: 5\n", encoding="utf-8")

        with pytest.raises(ValueError, match="retries"):
            RetryPolicyRegistry().load_overrides(path)

    def test_load_overrides_validates_values(self, tmp_path):
        path = tmp_path / "policies.yaml"
        path.write_text("tools:\n  t:\n    max_retries: -2\n", encoding="utf-8")

        with pytest.raises(ValueError):
            RetryPolicyRegistry().load_overrides(path)

    @pytest.mark.parametrize(
        "entry",
        [
            "{max_retries: 'three'}",
            "{base_delay: fast}",
            "{max_retries: 2.5}",
            "{jitter_factor: true}",
            "[1, 2]",
            "'retry a lot'",
        ],
    )
    def test_load_overrides_rejects_wrong_types(self, tmp_path, entry):
        """Badly typed entries raise ValueError naming the tool."""
        path = tmp_path / "policies.yaml"
        path.write_text(f"tools:\n  a::b: {entry}\n", encoding="utf-8")

        with pytest.raises(ValueError, match="a::b"):
            RetryPolicyRegistry().load_overrides(path)

    def test_load_overrides_accepts_int_for_float_fields(self, tmp_path):
        path = tmp_path / "policies.yaml"
        path.write_text("tools:\n  t:\n    base_delay: 2\n    max_delay: 60\n", encoding="utf-8")
        registry = RetryPolicyRegistry()

        registry.load_overrides(path)

        policy = registry.policy_for("t")
        assert policy.base_delay == 2.0
        assert isinstance(policy.base_delay, float)
        assert policy.max_delay == 60.0

    def test_from_config_reads_policy_file(self, tmp_path, monkeypatch):
        path = tmp_path / "policies.yaml"
        path.write_text("tools:\n  t:\n    max_retries: 9\n", encoding="utf-8")
        monkeypatch.setattr(config, "POLICY_FILE", str(path))

        registry = RetryPolicyRegistry.from_config()

        assert registry.policy_for("t").max_retries == 9
