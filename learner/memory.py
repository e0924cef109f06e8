"""
Pattern Registry - Lifecycle manager for learned context patterns

Owns every ContextPattern the learner knows about:
- Creation: lazily, on first reference to a key or first observation of a context
- Scoring: confidence blends observation volume, success rate and recency
- Gating: the learning mode decides how confident a pattern must be to act on it
- Eviction: capacity-bounded, least-used patterns go first

Only a summary of the registry survives a restart (counters plus a bounded
set of pattern keys); callers must tolerate the reduced fidelity.
"""

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .pattern import ContextPattern
from .values import clean_context

logger = logging.getLogger(__name__)

MAX_PATTERNS = 1000
MAX_HISTORY = 500
MIN_CONFIDENCE = 0.2
MAX_SAVED_KEYS = 100

RECENCY_WINDOW = 30 * 24 * 3600.0
SUGGESTION_DECAY = 7 * 24 * 3600.0

PLACEHOLDER_CONFIDENCE = 0.3
PLACEHOLDER_OCCURRENCES = 5


class LearningMode(Enum):
    PASSIVE = "passive"          # Observe only, never recommend
    ACTIVE = "active"            # Recommend at confidence >= 0.6
    AUTONOMOUS = "autonomous"    # Recommend at confidence >= 0.4

    @classmethod
    def parse(cls, value: Any) -> 'LearningMode':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown learning mode: {value!r}")


MODE_THRESHOLDS = {
    LearningMode.ACTIVE: 0.6,
    LearningMode.AUTONOMOUS: 0.4,
}


class ConfidenceLevel(Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @classmethod
    def from_value(cls, confidence: float) -> 'ConfidenceLevel':
        if confidence < 0.2:
            return cls.VERY_LOW
        if confidence < 0.4:
            return cls.LOW
        if confidence < 0.6:
            return cls.MEDIUM
        if confidence < 0.8:
            return cls.HIGH
        return cls.VERY_HIGH


@dataclass
class ActionSuggestion:
    """A ranked suggestion built from a matching context pattern"""
    action_type: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    success_rate: float = 0.0
    last_used: float = field(default_factory=time.time)
    pattern_key: Optional[str] = None

    def __post_init__(self):
        self.confidence = max(0.0, min(1.0, self.confidence))
        self.success_rate = max(0.0, min(1.0, self.success_rate))

    def combined_score(self, now: Optional[float] = None) -> float:
        now = time.time() if now is None else now
        age = max(0.0, now - self.last_used)
        recency = math.exp(-age / SUGGESTION_DECAY)
        return 0.6 * self.confidence + 0.2 * recency + 0.2 * self.success_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action_type': self.action_type,
            'parameters': dict(self.parameters),
            'confidence': self.confidence,
            'success_rate': self.success_rate,
            'last_used': self.last_used,
            'pattern_key': self.pattern_key,
        }


def accept_any(pattern: ContextPattern, context: Optional[Dict[str, Any]]) -> bool:
    """Default recommendation matcher: ranking is confidence-only"""
    return True


def action_key(action_type: str) -> str:
    return f"action_{action_type.lower()}"


def describe_key(key: str, pattern: Optional[ContextPattern] = None) -> Dict[str, str]:
    """Action type (and sub-type where the key carries one) encoded in a key"""
    if key.startswith("action_"):
        return {'action_type': key[len("action_"):]}
    if key.startswith("game_"):
        return {'action_type': "game_action", 'action_subtype': key[len("game_"):]}
    if key.startswith("ui_"):
        return {'action_type': "ui_interaction", 'action_subtype': key[len("ui_"):]}
    if pattern is not None:
        return {'action_type': pattern.action_type}
    return {'action_type': key}


class PatternRegistry:
    """
    Keyed store of ContextPatterns with usage-based eviction.

    Two mappings mutate together under one lock: key -> pattern and
    key -> usage count. Both are insertion-ordered dicts, so a stable sort
    on usage breaks eviction ties by age.
    """

    def __init__(self, mode: LearningMode = LearningMode.ACTIVE,
                 max_patterns: int = MAX_PATTERNS,
                 max_history: int = MAX_HISTORY,
                 learning_rate: float = 0.1,
                 similarity_threshold: float = 0.6,
                 context_matcher: Optional[Callable[[ContextPattern, Optional[Dict[str, Any]]], bool]] = None,
                 clock: Callable[[], float] = time.time):
        if max_patterns < 1:
            raise ValueError("max_patterns must be positive")
        self.mode = LearningMode.parse(mode)
        self.max_patterns = max_patterns
        self.max_history = max_history
        self.learning_rate = learning_rate
        self.similarity_threshold = similarity_threshold
        self.context_matcher = context_matcher or accept_any
        self._clock = clock

        self._lock = threading.RLock()
        self._patterns: Dict[str, ContextPattern] = {}
        self._usage: Dict[str, int] = {}
        self._history: deque = deque(maxlen=max_history)

        self.total_observations = 0
        self.total_actions = 0
        self.total_successful_predictions = 0
        self.overall_confidence = 0.0
        self.started_at = clock()

    def __len__(self):
        with self._lock:
            return len(self._patterns)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._patterns

    def get(self, key: str) -> Optional[ContextPattern]:
        with self._lock:
            return self._patterns.get(key)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._patterns)

    def usage_count(self, key: str) -> int:
        with self._lock:
            return self._usage.get(key, 0)

    def history(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._history)

    def set_mode(self, mode: LearningMode):
        mode = LearningMode.parse(mode)
        with self._lock:
            if mode != self.mode:
                logger.info(f"Learning mode changed: {self.mode.value} -> {mode.value}")
            self.mode = mode

    def _snapshot(self) -> List:
        with self._lock:
            return list(self._patterns.items())

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def get_or_create(self, key: str) -> ContextPattern:
        with self._lock:
            pattern = self._patterns.get(key)
            if pattern is None:
                pattern = ContextPattern(action_type=describe_key(key)['action_type'],
                                         confidence=0.0,
                                         first_observed=self._clock(),
                                         last_used=self._clock())
                self._insert(key, pattern)
            return pattern

    def _insert(self, key: str, pattern: ContextPattern, usage: int = 0):
        self._patterns[key] = pattern
        self._usage[key] = usage
        if len(self._patterns) > self.max_patterns:
            self.prune(protect=key)

    def prune(self, protect: Optional[str] = None) -> int:
        """Evict least-used patterns until the registry is back at capacity"""
        with self._lock:
            excess = len(self._patterns) - self.max_patterns
            if excess <= 0:
                return 0
            candidates = sorted((k for k in self._patterns if k != protect),
                                key=lambda k: self._usage.get(k, 0))
            for key in candidates[:excess]:
                del self._patterns[key]
                self._usage.pop(key, None)
                logger.debug(f"Evicted pattern {key}")
            return min(excess, len(candidates))

    # ── Learning ──────────────────────────────────────────────────────────

    def record_observation(self, key: str):
        pattern = self.get_or_create(key)
        with self._lock:
            self.total_observations += 1
        with pattern._lock:
            pattern.occurrences += 1
            pattern.last_used = self._clock()
            pattern.confidence = self._observation_confidence(pattern)

    def _observation_confidence(self, pattern: ContextPattern) -> float:
        volume = min(1.0, pattern.occurrences / 10.0)
        age = max(0.0, self._clock() - pattern.first_observed)
        recency = max(0.0, 1.0 - age / RECENCY_WINDOW)
        confidence = 0.4 * volume + 0.4 * pattern.success_rate + 0.2 * recency
        return max(0.0, min(1.0, confidence))

    def record_action_result(self, action_type: str, params: Optional[Dict[str, Any]],
                             success: bool):
        if not action_type:
            logger.warning("Ignoring action result without an action type")
            return
        key = action_key(action_type)
        parameters = clean_context(params)
        with self._lock:
            pattern = self.get_or_create(key)
            self._usage[key] = self._usage.get(key, 0) + 1
            self.total_actions += 1
            if success:
                self.total_successful_predictions += 1
            self._history.append({
                'action_type': action_type,
                'parameters': parameters,
                'success': bool(success),
                'timestamp': self._clock(),
            })

        with pattern._lock:
            pattern.occurrences += 1
            pattern.last_used = self._clock()
            if success:
                pattern.successes += 1
                pattern.confidence = min(1.0, pattern.confidence + 0.1)
            else:
                pattern.failures += 1
                pattern.confidence = max(0.0, pattern.confidence - 0.15)

        self._update_overall_confidence()

    def _update_overall_confidence(self):
        patterns = [p for _, p in self._snapshot()]
        average = (sum(p.confidence for p in patterns) / len(patterns)) if patterns else 0.0
        with self._lock:
            self.overall_confidence = 0.6 * self.success_rate + 0.4 * average

    @property
    def success_rate(self) -> float:
        if self.total_actions == 0:
            return 0.0
        return self.total_successful_predictions / self.total_actions

    def observe_context(self, action_type: str, context: Optional[Dict[str, Any]]) -> Optional[str]:
        """
        Fold one observed (action, context) pair into the fuzzy store.
        Returns the key of the pattern that absorbed it.
        """
        context = clean_context(context)
        if not action_type or not context:
            logger.warning(f"Ignoring context observation for {action_type!r} without context")
            return None

        best_key, best_score = None, 0.0
        for key, pattern in self._snapshot():
            score = pattern.similarity(action_type, context)
            if score > best_score:
                best_key, best_score = key, score

        with self._lock:
            self.total_observations += 1
            if best_key is not None and best_score >= self.similarity_threshold \
                    and best_key in self._patterns:
                pattern = self._patterns[best_key]
                self._usage[best_key] = self._usage.get(best_key, 0) + 1
            else:
                best_key = ContextPattern.content_key(action_type, context)
                pattern = self._patterns.get(best_key)
                if pattern is None:
                    self._insert(best_key, ContextPattern.observed(action_type, context), usage=1)
                    logger.debug(f"New context pattern {best_key}")
                    return best_key
                self._usage[best_key] = self._usage.get(best_key, 0) + 1

        pattern.update(action_type, context, self.learning_rate)
        return best_key

    def record_pattern_outcome(self, key: str, success: bool) -> bool:
        pattern = self.get(key)
        if pattern is None:
            return False
        if success:
            pattern.record_success()
        else:
            pattern.record_failure()
        return True

    def best_match(self, action_type: str, context: Optional[Dict[str, Any]]) -> Optional[str]:
        """Key of the context pattern most similar to (action_type, context)"""
        best_key, best_score = None, 0.0
        for key, pattern in self._snapshot():
            score = pattern.similarity(action_type, context)
            if score > best_score:
                best_key, best_score = key, score
        return best_key

    # ── Recommendation ────────────────────────────────────────────────────

    def should_apply(self, key: str, context: Optional[Dict[str, Any]] = None) -> bool:
        pattern = self.get(key)
        if pattern is None or pattern.confidence < MIN_CONFIDENCE:
            return False
        threshold = MODE_THRESHOLDS.get(self.mode)
        if threshold is None:
            return False
        return pattern.confidence >= threshold

    def best_recommendation(self, context: Optional[Dict[str, Any]] = None) -> Optional[str]:
        best_key, best_confidence = None, MIN_CONFIDENCE
        for key, pattern in self._snapshot():
            if pattern.confidence > best_confidence and self.context_matcher(pattern, context):
                best_key, best_confidence = key, pattern.confidence
        return best_key

    def recommended_action(self, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        key = self.best_recommendation(context)
        if key is None:
            return {}
        pattern = self.get(key)
        if pattern is None:
            return {}
        details = {
            'pattern_key': key,
            'confidence': pattern.confidence,
            'observations': pattern.occurrences,
            'success_rate': pattern.success_rate,
        }
        details.update(describe_key(key, pattern))
        return details

    def suggest_actions(self, context: Optional[Dict[str, Any]], limit: int = 5) -> List[ActionSuggestion]:
        if self.mode == LearningMode.PASSIVE or not context:
            return []

        suggestions = []
        for key, pattern in self._snapshot():
            if not pattern.context:
                continue
            match = pattern.context_match(context)
            if match <= 0.0:
                continue
            suggestions.append(ActionSuggestion(
                action_type=pattern.action_type,
                parameters=pattern.generate_parameters(context),
                confidence=match * pattern.confidence,
                success_rate=pattern.success_rate,
                last_used=pattern.last_used,
                pattern_key=key,
            ))

        now = self._clock()
        suggestions.sort(key=lambda s: s.combined_score(now), reverse=True)
        return suggestions[:limit]

    @staticmethod
    def confidence_level(confidence: float) -> ConfidenceLevel:
        return ConfidenceLevel.from_value(confidence)

    # ── Persistence ───────────────────────────────────────────────────────

    def save(self, store) -> bool:
        """Persist counters and a bounded set of pattern keys"""
        try:
            with self._lock:
                keys = list(self._patterns)[:MAX_SAVED_KEYS]
                store.put('total_observations', self.total_observations)
                store.put('total_actions', self.total_actions)
                store.put('total_successful_predictions', self.total_successful_predictions)
                store.put('overall_confidence', self.overall_confidence)
                store.put('pattern_keys', keys)
            store.commit()
            logger.info(f"Saved registry summary with {len(keys)} pattern keys")
            return True
        except Exception as e:
            logger.error(f"Failed to save pattern registry: {e}")
            return False

    def load(self, store) -> bool:
        """Rebuild placeholder patterns from a saved summary"""
        try:
            keys = store.get('pattern_keys', None)
            if keys is None:
                return False
            now = self._clock()
            with self._lock:
                self.total_observations = int(store.get('total_observations', 0))
                self.total_actions = int(store.get('total_actions', 0))
                self.total_successful_predictions = int(store.get('total_successful_predictions', 0))
                self.overall_confidence = float(store.get('overall_confidence', 0.0))
                for key in list(keys)[:MAX_SAVED_KEYS]:
                    if not isinstance(key, str) or key in self._patterns:
                        continue
                    self._insert(key, ContextPattern(
                        action_type=describe_key(key)['action_type'],
                        confidence=PLACEHOLDER_CONFIDENCE,
                        occurrences=PLACEHOLDER_OCCURRENCES,
                        first_observed=now - 24 * 3600,
                        last_used=now,
                    ))
            logger.info(f"Loaded registry summary with {len(keys)} pattern keys")
            return True
        except Exception as e:
            logger.error(f"Failed to load pattern registry: {e}")
            return False

    # ── Introspection ─────────────────────────────────────────────────────

    def metrics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'total_observations': self.total_observations,
                'total_actions': self.total_actions,
                'total_successful_predictions': self.total_successful_predictions,
                'pattern_count': len(self._patterns),
                'overall_confidence': self.overall_confidence,
                'success_rate': self.success_rate,
                'learning_mode': self.mode.value,
                'history_size': len(self._history),
                'uptime': self._clock() - self.started_at,
            }

    def reset(self):
        with self._lock:
            self._patterns.clear()
            self._usage.clear()
            self._history.clear()
            self.total_observations = 0
            self.total_actions = 0
            self.total_successful_predictions = 0
            self.overall_confidence = 0.0
        logger.info("Pattern registry reset")
