"""
Tests for context values and ContextPattern similarity / learning.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from learner.pattern import ContextPattern
from learner.values import (get_number, get_int, get_string, get_bool,
                            render_value, parse_value, clean_context)


class TestValues:
    def test_typed_accessors_substitute_defaults(self):
        ctx = {"battery": 55, "label": "home", "flag": True, "bad": "n/a"}
        assert get_number(ctx, "battery") == 55.0
        assert get_number(ctx, "bad", 1.5) == 1.5
        assert get_number(ctx, "missing", 2.0) == 2.0
        assert get_int(ctx, "battery") == 55
        assert get_int(None, "battery", 7) == 7
        assert get_string(ctx, "flag") == "true"
        assert get_bool(ctx, "flag") is True
        assert get_bool({"on": "yes"}, "on") is True

    def test_render_and_parse(self):
        assert render_value(5.0) == "5"
        assert render_value(2.5) == "2.5"
        assert render_value(False) == "false"
        assert parse_value("3") == 3
        assert parse_value("2.5") == 2.5
        assert parse_value("run") == "run"

    def test_clean_context_drops_unsupported_values(self):
        cleaned = clean_context({"a": 1, "b": [1, 2], 3: "x", "c": None, "d": "ok"})
        assert cleaned == {"a": 1, "d": "ok"}

    def test_clean_context_drops_non_finite_floats(self):
        cleaned = clean_context({"a": float("nan"), "b": float("inf"), "c": -float("inf"), "d": 0.5})
        assert cleaned == {"d": 0.5}

    def test_non_mapping_context_is_empty(self):
        assert clean_context(["not", "a", "map"]) == {}
        assert clean_context("level=1") == {}
        assert clean_context(42) == {}

    def test_non_finite_numbers_use_defaults(self):
        ctx = {"x": float("nan"), "y": float("inf"), "z": "-inf"}
        assert get_number(ctx, "x", 0.25) == 0.25
        assert get_number(ctx, "y") == 0.0
        assert get_number(ctx, "z", 1.0) == 1.0
        assert get_int(ctx, "x", 3) == 3
        assert get_int(ctx, "y", 4) == 4

    def test_parse_value_is_strict(self):
        assert parse_value("1_0") == "1_0"
        assert parse_value("1_000.5") == "1_000.5"
        assert parse_value("-7") == -7
        assert parse_value("1e3") == 1000.0
        assert parse_value("nan") == "nan"
        assert parse_value("infinity") == "infinity"
        assert parse_value("true") == "true"


class TestSimilarity:
    def test_identical_context_is_full_match(self):
        ctx = {"screen": "home", "battery": 50, "wifi": True}
        pattern = ContextPattern.observed("open_app", ctx)
        assert pattern.similarity("open_app", dict(ctx)) == 1.0

    def test_action_mismatch_is_zero(self):
        pattern = ContextPattern.observed("open_app", {"screen": "home"})
        assert pattern.similarity("close_app", {"screen": "home"}) == 0.0

    def test_empty_pattern_context_is_zero(self):
        pattern = ContextPattern("tap")
        assert pattern.similarity("tap", {"x": 1}) == 0.0
        assert pattern.similarity("tap", {}) == 0.0

    def test_partial_string_match(self):
        pattern = ContextPattern.observed("open", {"app": "mail"})
        assert pattern.similarity("open", {"app": "gmail"}) == pytest.approx(0.7)
        assert pattern.similarity("open", {"app": "maps"}) == 0.0

    def test_close_numeric_match(self):
        pattern = ContextPattern.observed("charge", {"battery": 100})
        assert pattern.similarity("charge", {"battery": 95}) == pytest.approx(0.9)
        assert pattern.similarity("charge", {"battery": 50}) == 0.0

    def test_missing_key_penalty(self):
        pattern = ContextPattern.observed("open", {"a": 1, "b": 2})
        # total = 0.5 + 0.5 * 0.5, matched = 0.5
        assert pattern.similarity("open", {"a": 1}) == pytest.approx(2.0 / 3.0)

    def test_bool_never_equals_int(self):
        pattern = ContextPattern.observed("toggle", {"on": True})
        assert pattern.similarity("toggle", {"on": 1}) == 0.0

    def test_similarity_bounds(self):
        pattern = ContextPattern.observed("open", {"a": 1, "b": "xyz", "c": 3.5})
        for query in ({"a": 1}, {"b": "y"}, {"c": 3.4, "d": 9}, {"a": 2, "b": "xyz", "c": 3.5}):
            score = pattern.similarity("open", query)
            assert 0.0 <= score <= 1.0


class TestUpdate:
    def test_numeric_blend_and_weight_growth(self):
        pattern = ContextPattern.observed("open", {"battery": 50, "screen": "home"})
        pattern.update("open", {"battery": 60}, 0.1)

        assert pattern.context["battery"] == 51
        assert isinstance(pattern.context["battery"], int)
        assert pattern.key_weights["battery"] == pytest.approx(0.52)
        assert pattern.key_weights["screen"] == pytest.approx(0.49)
        assert pattern.occurrences == 2

    def test_float_blend_stays_float(self):
        pattern = ContextPattern.observed("open", {"x": 1.0})
        pattern.update("open", {"x": 2.0}, 0.5)
        assert pattern.context["x"] == pytest.approx(1.5)
        assert isinstance(pattern.context["x"], float)

    def test_kind_mismatch_keeps_value(self):
        pattern = ContextPattern.observed("open", {"x": 1})
        pattern.update("open", {"x": 2.0}, 0.5)
        assert pattern.context["x"] == 1

    def test_new_keys_are_added(self):
        pattern = ContextPattern.observed("open", {"x": 1})
        pattern.update("open", {"x": 1, "y": "new"}, 0.1)
        assert pattern.context["y"] == "new"
        assert pattern.key_weights["y"] == pytest.approx(0.52)

    def test_missing_keys_fade_out(self):
        pattern = ContextPattern.observed("open", {"a": 1, "b": "x"})
        for _ in range(7):
            pattern.update("open", {"a": 1}, 1.0)
        assert "b" in pattern.context

        pattern.update("open", {"a": 1}, 1.0)
        assert "b" not in pattern.context
        assert "b" not in pattern.key_weights
        assert set(pattern.key_weights) <= set(pattern.context)

    def test_mismatched_action_is_ignored(self):
        pattern = ContextPattern.observed("open", {"a": 1})
        pattern.update("close", {"a": 5}, 1.0)
        assert pattern.occurrences == 1
        assert pattern.context == {"a": 1}

    def test_alternating_outcomes(self):
        pattern = ContextPattern("open", {"a": 1})
        for i in range(5):
            pattern.update("open", {"a": 1}, 0.1)
            if i % 2 == 0:
                pattern.record_success()
            else:
                pattern.record_failure()

        assert pattern.occurrences == 5
        assert pattern.successes == 3
        assert pattern.failures == 2
        assert 0.0 < pattern.confidence < 1.0


class TestConfidence:
    def test_success_never_lowers_confidence(self):
        pattern = ContextPattern.observed("open", {"a": 1})
        outcomes = [True, False, True, True, False, False, True, False, True]
        for success in outcomes:
            before = pattern.confidence
            if success:
                pattern.record_success()
                assert pattern.confidence >= before
            else:
                pattern.record_failure()

    def test_first_success_blends_toward_one(self):
        pattern = ContextPattern.observed("open", {"a": 1})
        pattern.record_success()
        assert pattern.confidence == pytest.approx(0.85)

    def test_repeated_failure_trends_to_zero(self):
        pattern = ContextPattern.observed("open", {"a": 1})
        pattern.confidence = 0.9
        for _ in range(20):
            pattern.record_failure()
        assert pattern.confidence < 0.01
        assert pattern.success_rate == 0.0


class TestParametersAndSerialization:
    def test_generate_parameters(self):
        pattern = ContextPattern.observed("open", {"a": 1, "b": 2})
        params = pattern.generate_parameters({"b": 5, "c": 9})
        assert params == {"a": 1, "b": 5}

    def test_to_dict_from_dict(self):
        pattern = ContextPattern.observed("open", {"a": 1, "b": "x"})
        pattern.record_success()
        restored = ContextPattern.from_dict(pattern.to_dict())
        assert restored.action_type == "open"
        assert restored.context == pattern.context
        assert restored.key_weights == pattern.key_weights
        assert restored.confidence == pattern.confidence
        assert restored.successes == 1

    def test_content_key_is_order_independent(self):
        k1 = ContextPattern.content_key("Open", {"a": 1, "b": "x"})
        k2 = ContextPattern.content_key("Open", {"b": "x", "a": 1})
        assert k1 == k2
        assert k1.startswith("context_open_")


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
