"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from insight_system.config.settings import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("RECONCILIATION_STRATEGY", raising=False)
        monkeypatch.delenv("EXACT_MATCH_THRESHOLD", raising=False)
        monkeypatch.delenv("NEAR_MATCH_THRESHOLD", raising=False)
        s = Settings(_env_file=None)
        assert s.reconciliation_strategy == "first_match"
        assert s.near_match_threshold < s.exact_match_threshold

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_STRATEGY", "best_match")
        monkeypatch.setenv("MAX_RPM", "60")
        s = Settings(_env_file=None)
        assert s.reconciliation_strategy == "best_match"
        assert s.max_rpm == 60

    def test_unknown_strategy_rejected(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_STRATEGY", "random")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_threshold_order_enforced(self, monkeypatch):
        monkeypatch.setenv("EXACT_MATCH_THRESHOLD", "0.6")
        monkeypatch.setenv("NEAR_MATCH_THRESHOLD", "0.8")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
