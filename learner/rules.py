"""
Rule Store - Induces condition -> effect rules from state transitions

Every observed transition (before, action, after, reward) is compared key by
key. A key whose value changed becomes a candidate rule:

    condition:  "<action> & <key>=<before value>"
    effect:     "<key>=<after value>"

Later transitions corroborate (+0.1) or contradict (-0.2) the rules whose
condition they satisfy. Rules that fall below 0.1 confidence are purged.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .values import Context, clean_context, parse_value, render_value

logger = logging.getLogger(__name__)

INITIAL_CONFIDENCE = 0.5
CORROBORATION_BONUS = 0.1
CONTRADICTION_PENALTY = 0.2
PURGE_THRESHOLD = 0.1


@dataclass(frozen=True)
class Observation:
    """One transition; immutable once built"""
    before_state: Context
    action: str
    after_state: Context
    reward: float = 0.0

    @classmethod
    def of(cls, before_state: Optional[Dict[str, Any]], action: str,
           after_state: Optional[Dict[str, Any]], reward: float = 0.0) -> 'Observation':
        return cls(clean_context(before_state), action,
                   clean_context(after_state), float(reward))


@dataclass
class Rule:
    action: str
    condition_key: str
    condition_value: str
    effect_key: str
    effect_value: str
    confidence: float = INITIAL_CONFIDENCE
    reward_total: float = 0.0
    reward_count: int = 0

    @property
    def condition(self) -> str:
        return f"{self.action} & {self.condition_key}={self.condition_value}"

    @property
    def effect(self) -> str:
        return f"{self.effect_key}={self.effect_value}"

    @property
    def identity(self) -> Tuple[str, str]:
        return self.condition, self.effect

    @property
    def average_reward(self) -> float:
        if self.reward_count == 0:
            return 0.0
        return self.reward_total / self.reward_count

    @property
    def description(self) -> str:
        return (f"{self.action} changes {self.effect_key} from "
                f"{self.condition_value} to {self.effect_value}")

    def applies(self, state: Dict[str, Any], action: str) -> bool:
        return (action == self.action
                and self.condition_key in state
                and render_value(state[self.condition_key]) == self.condition_value)

    def add_reward(self, reward: float):
        self.reward_total += reward
        self.reward_count += 1

    def apply(self, state: Dict[str, Any]):
        state[self.effect_key] = parse_value(self.effect_value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'condition': self.condition,
            'effect': self.effect,
            'confidence': self.confidence,
            'average_reward': self.average_reward,
            'description': self.description,
        }


class RuleStore:
    """
    Per-session rule lists behind one lock.

    Only record() mutates rules; queries copy the lists under the lock and
    evaluate outside it.
    """

    def __init__(self):
        self.active = False
        self._lock = threading.RLock()
        self._rules: Dict[str, List[Rule]] = {}
        self.observations = 0

    def start(self):
        if not self.active:
            self.active = True
            logger.info("Rule store started")

    def stop(self):
        if self.active:
            self.active = False
            logger.info("Rule store stopped")

    @staticmethod
    def extract(observation: Observation) -> List[Rule]:
        """Candidate rules for every key whose value the action changed"""
        if not observation.action:
            return []

        rules, seen = [], set()
        before, after = observation.before_state, observation.after_state
        for key, after_value in after.items():
            if key not in before:
                continue
            before_text, after_text = render_value(before[key]), render_value(after_value)
            if before_text == after_text:
                continue
            rule = Rule(observation.action, key, before_text, key, after_text)
            if rule.identity not in seen:
                seen.add(rule.identity)
                rule.add_reward(observation.reward)
                rules.append(rule)
        return rules

    @staticmethod
    def reinforce(rules: List[Rule], observation: Observation) -> List[Rule]:
        """Adjust confidence of matching rules and return the survivors"""
        for rule in rules:
            if not rule.applies(observation.before_state, observation.action):
                continue
            if rule.effect_key not in observation.after_state:
                continue
            observed = render_value(observation.after_state[rule.effect_key])
            if observed == rule.effect_value:
                rule.confidence = min(1.0, rule.confidence + CORROBORATION_BONUS)
                rule.add_reward(observation.reward)
            else:
                rule.confidence = max(0.0, rule.confidence - CONTRADICTION_PENALTY)

        survivors = [r for r in rules if r.confidence >= PURGE_THRESHOLD]
        if len(survivors) < len(rules):
            logger.debug(f"Purged {len(rules) - len(survivors)} contradicted rules")
        return survivors

    def record(self, session_id: str, observation: Observation) -> List[Rule]:
        """Fold one transition into a session's rules; returns the updated list"""
        if not self.active or observation is None or not observation.action:
            return []

        with self._lock:
            rules = self.reinforce(self._rules.get(session_id, []), observation)
            known = {r.identity for r in rules}
            for rule in self.extract(observation):
                if rule.identity not in known:
                    known.add(rule.identity)
                    rules.append(rule)
                    logger.debug(f"New rule for {session_id}: {rule.condition} -> {rule.effect}")
            self._rules[session_id] = rules
            self.observations += 1
            return list(rules)

    def record_transition(self, session_id: str, before_state: Optional[Dict[str, Any]],
                          action: str, after_state: Optional[Dict[str, Any]],
                          reward: float = 0.0) -> List[Rule]:
        if before_state is None or after_state is None or not action:
            return []
        return self.record(session_id, Observation.of(before_state, action, after_state, reward))

    def predict_outcome(self, session_id: str, state: Optional[Dict[str, Any]],
                        action: Optional[str]) -> Dict[str, Any]:
        """Copy of state with the effect of every satisfied rule applied"""
        if not self.active or state is None or not action:
            return {}

        prediction = dict(state)
        applied = [r for r in self.rules_for(session_id) if r.applies(state, action)]
        for rule in applied:
            rule.apply(prediction)
        if applied:
            prediction['predicted_reward'] = sum(r.average_reward * r.confidence for r in applied)
        return prediction

    def relevant_rules(self, state: Optional[Dict[str, Any]]) -> List[Rule]:
        if not self.active or not state:
            return []
        return [r for r in self.all_rules() if r.condition_key in state]

    def rules_for(self, session_id: str) -> List[Rule]:
        with self._lock:
            return list(self._rules.get(session_id, []))

    def all_rules(self) -> List[Rule]:
        with self._lock:
            return [rule for rules in self._rules.values() for rule in rules]

    def clear(self, session_id: Optional[str] = None):
        with self._lock:
            if session_id is None:
                self._rules.clear()
            else:
                self._rules.pop(session_id, None)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            rules = [rule for rules in self._rules.values() for rule in rules]
            return {
                'active': self.active,
                'sessions': len(self._rules),
                'rules': len(rules),
                'observations': self.observations,
                'average_confidence': (sum(r.confidence for r in rules) / len(rules)) if rules else 0.0,
            }
