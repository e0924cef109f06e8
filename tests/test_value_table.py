"""
Tests for state discretization, domain vocabularies and the tabular TD learner.
"""

import sys
import os
import math

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from learner.domains import DomainType, seed_vocabulary, default_action, classify_identifier
from learner.value_table import ValueTable, discretize, action_index, explain


def make_table(hint: str = "action") -> ValueTable:
    table = ValueTable(domain_hint=hint)
    table.start()
    return table


class TestDiscretize:
    def test_sentinels(self):
        assert discretize({}) == "empty_state"
        assert discretize(None) == "empty_state"
        assert discretize({"score": 5}) == "default_state"

    def test_full_state(self):
        state = {
            "player_position_x": 0.55,
            "player_position_y": 0.71,
            "level": 5,
            "lives": 3,
            "enemies_count": 4,
            "health_percentage": 0.8,
        }
        assert discretize(state) == "p5_7_l5_lives3_e4_h8"

    def test_independent_of_key_order(self):
        state = {"level": 2, "lives": 1, "health_percentage": 0.35, "score": 7}
        reordered = dict(reversed(list(state.items())))
        assert discretize(state) == discretize(reordered)

    def test_non_finite_fields_fall_back_to_defaults(self):
        state = {"player_position_x": float("inf"), "player_position_y": float("nan"),
                 "level": 3, "health_percentage": float("nan")}
        assert discretize(state) == "p0_0_l3_h0"

    def test_position_needs_both_axes(self):
        assert discretize({"player_position_x": 0.5, "level": 2}) == "_l2"


class TestDomains:
    def test_seed_vocabulary_by_hint(self):
        assert "attack" in seed_vocabulary("action")
        assert "attack" in seed_vocabulary("Arcade")
        assert "analyze" in seed_vocabulary("puzzle")
        assert "talk" in seed_vocabulary("rpg")
        assert "tap_center" in seed_vocabulary("unknown")
        assert seed_vocabulary("action") is not seed_vocabulary("action")

    def test_default_action(self):
        assert default_action("shooter")[0] == "tap_center"
        assert default_action("board")[0] == "analyze"
        assert default_action("casual")[0] == "explore"
        assert default_action("")[0] == "explore"

    def test_domain_groups(self):
        assert DomainType.RACING.requires_quick_reflexes
        assert DomainType.MOBA.is_strategic
        assert not DomainType.PUZZLE.requires_quick_reflexes
        assert DomainType.from_string("nonsense") == DomainType.UNKNOWN

    def test_classify_identifier(self):
        assert classify_identifier("com.example.chessmaster") == DomainType.BOARD
        assert classify_identifier("com.supercell.clashofclans") == DomainType.STRATEGY
        assert classify_identifier("org.notes") == DomainType.UNKNOWN


class TestRecommend:
    def test_inactive_table_recommends_nothing(self):
        table = ValueTable(domain_hint="action")
        assert table.recommend({"level": 1}) == []
        assert table.select_action({"level": 1}) == 0

    def test_sorted_logistic_confidences(self):
        table = make_table("action")
        recs = table.recommend({"level": 1})
        assert len(recs) == 7
        confidences = [r.confidence for r in recs]
        assert confidences == sorted(confidences, reverse=True)
        assert recs[0].action == "attack"
        assert recs[0].confidence == pytest.approx(1.0 / (1.0 + math.exp(-0.4)))

    def test_reasoning_uses_state(self):
        table = make_table("action")
        recs = {r.action: r.reasoning for r in table.recommend({"enemies_count": 3})}
        assert recs["attack"] == "Attacking nearby enemy (3 enemies nearby)"

    def test_reasoning_templates(self):
        assert explain("move_left", {"nearest_enemy_distance": 0.1}) == "Moving left to avoid nearby enemy"
        assert explain("use_item", {"health_percentage": 0.25}) == \
            "Using item to restore health (currently at 25%)"
        assert explain("wait", {}) == "Waiting for better opportunity or timing"
        assert explain("dance", {}) == "Executing dance based on learned patterns"

    def test_select_action_index(self):
        table = make_table("action")
        assert table.select_action({"level": 1}) == 6
        assert action_index("swipe_left") == 1
        assert action_index("move_up") == 3
        assert action_index("use_item") == 7
        assert action_index("tap_center") == 0

    def test_recommend_vector(self):
        table = make_table("rpg")
        recs = table.recommend_vector([0.1, 0.2, 0.3])
        assert {r.action for r in recs} == set(seed_vocabulary("rpg"))

    def test_domain_hint_applies_to_new_rows(self):
        table = make_table("action")
        table.recommend({"level": 1})
        table.set_domain_hint("puzzle")
        table.recommend({"level": 2})
        assert "attack" in table.q_values({"level": 1})
        assert "analyze" in table.q_values({"level": 2})


class TestUpdate:
    def test_single_update(self):
        table = make_table("action")
        state = {"level": 1}
        table.update(state, "attack", 1.0, state)
        # 0.4 + 0.1 * (1 + 0.9 * 0.4 - 0.4)
        assert table.q_values(state)["attack"] == pytest.approx(0.496)
        assert table.state_value(state) == pytest.approx(0.496)

    def test_update_seeds_both_rows(self):
        table = make_table("action")
        table.update({"level": 1}, "jump", 0.0, {"level": 2})
        assert len(table) == 2

    def test_inactive_table_ignores_updates(self):
        table = ValueTable(domain_hint="action")
        table.update({"level": 1}, "attack", 1.0, {"level": 1})
        assert len(table) == 0

    def test_td_convergence(self):
        table = make_table("action")
        s1, s2 = {"level": 1}, {"level": 2}
        reward = 1.0
        for _ in range(2000):
            table.update(s1, "attack", reward, s2)
            table.update(s2, "attack", reward, s1)
        expected = reward / (1 - 0.9)
        assert table.q_values(s1)["attack"] == pytest.approx(expected, abs=1e-3)
        assert table.q_values(s2)["attack"] == pytest.approx(expected, abs=1e-3)

    def test_rewarded_action_gains_confidence(self):
        table = make_table("unknown")
        state = {"level": 3}
        before = {r.action: r.confidence for r in table.recommend(state)}
        table.update(state, "explore", 1.0, state)
        after = {r.action: r.confidence for r in table.recommend(state)}
        assert after["explore"] > before["explore"]

    def test_stop_keeps_learned_values(self):
        table = make_table("action")
        table.update({"level": 1}, "attack", 1.0, {"level": 1})
        table.stop()
        assert table.recommend({"level": 1}) == []
        table.start()
        assert table.q_values({"level": 1})["attack"] == pytest.approx(0.496)
        assert table.info()['updates'] == 1


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
