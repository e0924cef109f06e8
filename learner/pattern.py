"""
ContextPattern - The atomic unit of learning in the context action learner

A pattern associates one action type with a representative context (the
situation in which the action tends to happen). It learns in two ways:
- Approximability: every new observation pulls the stored context toward
  the observed one and re-weights which context keys matter
- Feedback: execution outcomes move its confidence
"""

import hashlib
import json
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .values import Context, clean_context, is_number, same_kind, values_equal

INITIAL_KEY_WEIGHT = 0.5
MIN_KEY_WEIGHT = 0.1

STRING_PARTIAL_MATCH = 0.7
NUMERIC_CLOSE_MATCH = 0.9
NUMERIC_TOLERANCE = 0.1
MISSING_KEY_PENALTY = 0.5


@dataclass
class ContextPattern:
    """
    A learned (action type, context) association with adaptive per-key
    importance weights.
    """
    action_type: str
    context: Context = field(default_factory=dict)
    key_weights: Dict[str, float] = field(default_factory=dict)

    confidence: float = 0.5
    occurrences: int = 0
    successes: int = 0
    failures: int = 0
    first_observed: float = field(default_factory=time.time)
    last_used: float = field(default_factory=time.time)

    _lock: threading.RLock = field(default_factory=threading.RLock,
                                   init=False, repr=False, compare=False)

    def __post_init__(self):
        self.context = clean_context(self.context)
        for key in self.context:
            self.key_weights.setdefault(key, INITIAL_KEY_WEIGHT)
        # Weights may never outlive their context key
        for key in list(self.key_weights):
            if key not in self.context:
                del self.key_weights[key]

    @classmethod
    def observed(cls, action_type: str, context: Dict[str, Any]) -> 'ContextPattern':
        """Create a pattern from its first observation"""
        return cls(action_type=action_type, context=dict(context), occurrences=1)

    @staticmethod
    def content_key(action_type: str, context: Dict[str, Any]) -> str:
        """Deterministic registry key for a freshly observed context"""
        content = json.dumps(clean_context(context), sort_keys=True, default=str)
        digest = hashlib.sha256(content.encode()).hexdigest()[:12]
        return f"context_{action_type.lower()}_{digest}"

    # ── Comparison ────────────────────────────────────────────────────────

    def similarity(self, action_type: str, context: Optional[Dict[str, Any]]) -> float:
        """Weighted context match in [0, 1]; 0 when the action type differs"""
        if action_type != self.action_type:
            return 0.0
        return self.context_match(context)

    def context_match(self, context: Optional[Dict[str, Any]]) -> float:
        with self._lock:
            if not context or not self.context:
                return 0.0

            total_weight = 0.0
            matched_weight = 0.0

            for key, pattern_value in self.context.items():
                weight = self.key_weights.get(key, INITIAL_KEY_WEIGHT)

                if key not in context:
                    total_weight += weight * MISSING_KEY_PENALTY
                    continue

                total_weight += weight
                matched_weight += weight * _value_match(pattern_value, context[key])

            if total_weight <= 0.0:
                return 0.0
            return matched_weight / total_weight

    # ── Learning ──────────────────────────────────────────────────────────

    def update(self, action_type: str, context: Dict[str, Any], learning_rate: float):
        """
        Pull the stored context toward a new observation of the same action.
        Keys seen again gain weight; keys that keep going missing fade out.
        """
        if action_type != self.action_type:
            return

        context = clean_context(context)
        with self._lock:
            self.occurrences += 1
            self.last_used = time.time()

            for key, new_value in context.items():
                current_weight = self.key_weights.get(key, INITIAL_KEY_WEIGHT)
                self.key_weights[key] = min(1.0, current_weight + learning_rate * 0.2)

                if key not in self.context:
                    self.context[key] = new_value
                    continue

                current_value = self.context[key]
                if not same_kind(current_value, new_value) or values_equal(current_value, new_value):
                    continue

                if is_number(current_value):
                    blended = current_value * (1 - learning_rate) + new_value * learning_rate
                    self.context[key] = int(round(blended)) if isinstance(current_value, int) else float(blended)
                elif random.random() < learning_rate:
                    self.context[key] = new_value

            for key in [k for k in self.context if k not in context]:
                new_weight = self.key_weights.get(key, INITIAL_KEY_WEIGHT) * (1 - learning_rate * 0.2)
                if new_weight < MIN_KEY_WEIGHT:
                    del self.context[key]
                    self.key_weights.pop(key, None)
                else:
                    self.key_weights[key] = new_weight

    def record_success(self):
        with self._lock:
            self.successes += 1
            # A success never lowers confidence
            self.confidence = max(self.confidence, self._blended_confidence())

    def record_failure(self):
        with self._lock:
            self.failures += 1
            self.confidence = self._blended_confidence()

    def _blended_confidence(self) -> float:
        return max(0.0, min(1.0, 0.3 * self.confidence + 0.7 * self.success_rate))

    @property
    def success_rate(self) -> float:
        """Share of recorded outcomes that succeeded"""
        outcomes = self.successes + self.failures
        if outcomes <= 0:
            return 0.0
        return self.successes / outcomes

    def touch(self):
        self.last_used = time.time()

    def generate_parameters(self, current_context: Optional[Dict[str, Any]]) -> Context:
        """The stored template with live values substituted for shared keys"""
        with self._lock:
            params = dict(self.context)
        if current_context:
            for key in params:
                if key in current_context:
                    params[key] = current_context[key]
        return params

    # ── Serialization ─────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'action_type': self.action_type,
                'context': dict(self.context),
                'key_weights': dict(self.key_weights),
                'confidence': self.confidence,
                'occurrences': self.occurrences,
                'successes': self.successes,
                'failures': self.failures,
                'first_observed': self.first_observed,
                'last_used': self.last_used,
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ContextPattern':
        return cls(
            action_type=data['action_type'],
            context=data.get('context', {}),
            key_weights=dict(data.get('key_weights', {})),
            confidence=data.get('confidence', 0.5),
            occurrences=data.get('occurrences', 0),
            successes=data.get('successes', 0),
            failures=data.get('failures', 0),
            first_observed=data.get('first_observed', time.time()),
            last_used=data.get('last_used', time.time()),
        )

    def __repr__(self):
        return (f"ContextPattern({self.action_type}, keys={sorted(self.context)}, "
                f"conf={self.confidence:.2f}, n={self.occurrences})")


def _value_match(pattern_value: Any, context_value: Any) -> float:
    """Fraction of a key's weight earned by one compared pair"""
    if values_equal(pattern_value, context_value):
        return 1.0

    if isinstance(pattern_value, str) and isinstance(context_value, str):
        if pattern_value in context_value or context_value in pattern_value:
            return STRING_PARTIAL_MATCH
        return 0.0

    if is_number(pattern_value) and is_number(context_value):
        diff = abs(pattern_value - context_value)
        largest = max(abs(pattern_value), abs(context_value))
        if largest > 0 and diff / largest < NUMERIC_TOLERANCE:
            return NUMERIC_CLOSE_MATCH

    return 0.0
