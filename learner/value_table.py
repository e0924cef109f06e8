"""
Value Table - Tabular state-action learner

States are discretized into short hash keys; each key owns a row of
action -> value estimates that is seeded from the domain vocabulary on
first visit and refined by one-step temporal-difference updates:

    Q(s,a) <- Q(s,a) + alpha * (r + gamma * max_a' Q(s',a') - Q(s,a))

Rows are never removed; the discretization keeps the table small.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .domains import seed_vocabulary
from .values import get_int, get_number, render_value

logger = logging.getLogger(__name__)

EMPTY_STATE = "empty_state"
DEFAULT_STATE = "default_state"

# Substring -> canonical action index, first match wins
ACTION_INDEX = [
    ("left", 1),
    ("right", 2),
    ("up", 3),
    ("down", 4),
    ("jump", 5),
    ("attack", 6),
    ("use", 7),
]
NO_OP = 0


@dataclass
class ActionRecommendation:
    action: str
    confidence: float
    reasoning: str = ""

    def add_reasoning(self, text: str):
        self.reasoning = f"{self.reasoning}; {text}" if self.reasoning else text

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action,
            'confidence': self.confidence,
            'reasoning': self.reasoning,
        }


def discretize(state: Optional[Dict[str, Any]]) -> str:
    """Deterministic coarse key for a state; map ordering never matters"""
    if not state:
        return EMPTY_STATE

    parts = []
    if 'player_position_x' in state and 'player_position_y' in state:
        x = int(get_number(state, 'player_position_x') * 10)
        y = int(get_number(state, 'player_position_y') * 10)
        parts.append(f"p{x}_{y}")
    if 'level' in state:
        parts.append(f"_l{render_value(state['level'])}")
    if 'lives' in state:
        parts.append(f"_lives{render_value(state['lives'])}")
    if 'enemies_count' in state:
        parts.append(f"_e{render_value(state['enemies_count'])}")
    if 'health_percentage' in state:
        parts.append(f"_h{int(get_number(state, 'health_percentage') * 10)}")

    return "".join(parts) or DEFAULT_STATE


def sigmoid(values: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-values))


def explain(action: str, state: Dict[str, Any]) -> str:
    """Short human-readable justification for recommending an action"""
    if "move" in action or "swipe" in action:
        if "left" in action:
            text = "Moving left"
            if 'nearest_enemy_distance' in state:
                if get_number(state, 'nearest_enemy_distance') < 0.3:
                    text += " to avoid nearby enemy"
                else:
                    text += " to explore the area"
            return text
        if "right" in action:
            text = "Moving right"
            if 'nearest_item_distance' in state:
                if get_number(state, 'nearest_item_distance') < 0.4:
                    text += " towards nearby item"
                else:
                    text += " to progress in the level"
            return text
        if "up" in action:
            return "Moving up to reach higher platform"
        if "down" in action:
            return "Moving down to avoid overhead obstacles"
        return "Moving"

    if action == "jump":
        return "Jumping to avoid obstacle or reach platform"

    if action == "attack":
        if 'enemies_count' not in state:
            return "Attacking to clear the path"
        enemies = get_int(state, 'enemies_count')
        if enemies <= 0:
            return "Preemptive attack in case of unseen threats"
        if enemies > 1:
            return f"Attacking nearby enemy ({enemies} enemies nearby)"
        return "Attacking nearby enemy"

    if "item" in action:
        if 'health_percentage' not in state:
            return "Using item at optimal moment"
        health = get_number(state, 'health_percentage')
        if health < 0.5:
            return f"Using item to restore health (currently at {int(health * 100)}%)"
        return "Using item for strategic advantage"

    if action == "analyze":
        return "Analyzing the current situation before acting"
    if action == "explore":
        return "Exploring to discover game mechanics and opportunities"
    if action == "wait":
        return "Waiting for better opportunity or timing"
    return f"Executing {action} based on learned patterns"


def action_index(action: str) -> int:
    for token, index in ACTION_INDEX:
        if token in action:
            return index
    return NO_OP


class ValueTable:
    """
    Q-table keyed by discretized state.

    Inactive tables answer every query with an empty/neutral result and
    ignore updates; learned rows survive a stop/start cycle.
    """

    def __init__(self, domain_hint: str = "unknown",
                 learning_rate: float = 0.1, discount_factor: float = 0.9):
        self.domain_hint = domain_hint or "unknown"
        self.learning_rate = learning_rate
        self.discount_factor = discount_factor
        self.active = False

        self._lock = threading.RLock()
        self._q_values: Dict[str, Dict[str, float]] = {}
        self._state_values: Dict[str, float] = {}
        self.updates = 0

    def start(self):
        if not self.active:
            self.active = True
            logger.info("Value table started")

    def stop(self):
        if self.active:
            self.active = False
            logger.info("Value table stopped")

    def set_domain_hint(self, hint: str):
        """Affects rows seeded from now on; existing rows keep their actions"""
        if hint:
            self.domain_hint = hint

    def __len__(self):
        with self._lock:
            return len(self._q_values)

    # ── Table access ──────────────────────────────────────────────────────

    def seed(self, state_hash: str) -> Dict[str, float]:
        with self._lock:
            row = self._q_values.get(state_hash)
            if row is None:
                row = seed_vocabulary(self.domain_hint)
                self._q_values[state_hash] = row
                logger.debug(f"Seeded state {state_hash} with {len(row)} actions")
            return row

    def q_values(self, state: Optional[Dict[str, Any]]) -> Dict[str, float]:
        """Copy of the row for a state, empty when never visited"""
        with self._lock:
            return dict(self._q_values.get(discretize(state), {}))

    def state_value(self, state: Optional[Dict[str, Any]]) -> float:
        with self._lock:
            return self._state_values.get(discretize(state), 0.0)

    # ── Recommendation ────────────────────────────────────────────────────

    def recommend(self, state: Optional[Dict[str, Any]]) -> List[ActionRecommendation]:
        if not self.active or state is None:
            return []

        with self._lock:
            row = dict(self.seed(discretize(state)))

        actions = list(row)
        confidences = sigmoid(np.array([row[a] for a in actions], dtype=float))
        recommendations = [
            ActionRecommendation(action, float(conf), explain(action, state))
            for action, conf in zip(actions, confidences)
        ]
        recommendations.sort(key=lambda r: r.confidence, reverse=True)
        return recommendations

    def recommend_vector(self, features: Optional[Sequence[float]]) -> List[ActionRecommendation]:
        """Recommendations for a flat feature vector (keys feature_0..feature_n)"""
        if features is None:
            return []
        return self.recommend({f"feature_{i}": float(v) for i, v in enumerate(features)})

    def select_action(self, state: Optional[Dict[str, Any]]) -> int:
        recommendations = self.recommend(state)
        if not recommendations:
            return NO_OP
        return action_index(recommendations[0].action)

    # ── Learning ──────────────────────────────────────────────────────────

    def update(self, prev_state: Optional[Dict[str, Any]], action: Optional[str],
               reward: float, next_state: Optional[Dict[str, Any]]):
        if not self.active or prev_state is None or not action or next_state is None:
            return

        state_hash = discretize(prev_state)
        next_hash = discretize(next_state)

        with self._lock:
            row = self.seed(state_hash)
            next_row = self.seed(next_hash)

            current = row.get(action, 0.0)
            max_next = float(np.max(list(next_row.values()))) if next_row else 0.0
            row[action] = current + self.learning_rate * (
                reward + self.discount_factor * max_next - current)

            self._state_values[state_hash] = float(np.max(list(row.values())))
            self.updates += 1

    def info(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'active': self.active,
                'domain_hint': self.domain_hint,
                'states': len(self._q_values),
                'updates': self.updates,
                'learning_rate': self.learning_rate,
                'discount_factor': self.discount_factor,
            }
