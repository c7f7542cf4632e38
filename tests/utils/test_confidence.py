"""Tests for confidence scale conversions."""

import pytest

from insight_system.utils.confidence import (
    DEFAULT_CONFIDENCE,
    clamp_confidence,
    format_confidence,
    fraction_to_percent,
    parse_confidence,
    parse_fraction,
    round_half_up,
    weighted_confidence,
)


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(84.49) == 84

    def test_clamp(self):
        assert clamp_confidence(-5) == 0
        assert clamp_confidence(140) == 100
        assert clamp_confidence(72.5) == 73
        assert clamp_confidence(float("nan")) == DEFAULT_CONFIDENCE


class TestParsing:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("95%", 95),
            ("95", 95),
            ("0.9", 90),
            (0.9, 90),
            (95, 95),
            (1, 100),
            ("high", 85),
            ("Medium", 65),
            ("low", 40),
            ("120%", 100),
        ],
    )
    def test_formats(self, raw, expected):
        assert parse_confidence(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "unsure", "abc%", True, float("nan"), float("-inf"), "inf", "nan%", [90]])
    def test_unparseable_defaults(self, raw):
        assert parse_confidence(raw) == DEFAULT_CONFIDENCE

    def test_fraction_to_percent(self):
        assert fraction_to_percent(0.875) == 88
        assert fraction_to_percent(87.0) == 87

    def test_default_is_overridable(self):
        assert parse_confidence("n/a", default=0) == 0

    def test_fraction_scale(self):
        assert parse_fraction("90%") == pytest.approx(0.9)
        assert parse_fraction(float("nan")) == pytest.approx(0.5)
        assert parse_fraction(None, default=0) == 0.0

    def test_format(self):
        assert format_confidence(88) == "88%"


class TestWeightedConfidence:
    def test_first_enrichment_is_plain_mean(self):
        assert weighted_confidence(90, 70, 1) == 80

    def test_weight_grows_with_enrichment_count(self):
        # (90 * 3 + 50) / 4 = 80
        assert weighted_confidence(90, 50, 3) == 80

    def test_zero_count_floored_at_one(self):
        assert weighted_confidence(60, 80, 0) == 70

    @pytest.mark.parametrize("existing,candidate,count", [(100, 100, 5), (0, 0, 1), (100, 0, 1), (0, 100, 9)])
    def test_stays_in_range(self, existing, candidate, count):
        assert 0 <= weighted_confidence(existing, candidate, count) <= 100
