"""
Prediction Orchestrator - The predict / observe / feedback loop

Composes the three learners behind one public API:
1. ValueTable ranks candidate actions for the current session state
2. RuleStore predicts each candidate's outcome and nudges its confidence
3. PatternRegistry learns which contexts precede which actions, and which
   of those actions worked

Sessions are logical targets (one running game or app) tracked
independently. Every public call is best-effort: malformed input, an
unknown session or a stopped engine yields an empty/neutral answer.
"""

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .config import EngineConfig
from .domains import default_action
from .memory import ActionSuggestion, PatternRegistry
from .rules import Observation, RuleStore
from .storage import PreferenceStore, open_store
from .value_table import ActionRecommendation, ValueTable
from .values import Context, clean_context

logger = logging.getLogger(__name__)

RULE_NUDGE = 0.2
DEFAULT_CONFIDENCE = 0.5


class EngineStatus(Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    STOPPED = "stopped"
    RELEASED = "released"


class ActionPrediction(ActionRecommendation):
    """A value-table recommendation after rule-based adjustment"""

    @classmethod
    def from_recommendation(cls, rec: ActionRecommendation) -> 'ActionPrediction':
        return cls(rec.action, rec.confidence, f"RL Model: {rec.reasoning}")


@dataclass
class SessionState:
    """Running state of one session; body mutations take its own lock"""
    session_id: str
    state_data: Context = field(default_factory=dict)
    last_snapshot: Context = field(default_factory=dict)
    total_reward: float = 0.0
    action_count: int = 0
    domain_hint: Optional[str] = None

    _lock: threading.RLock = field(default_factory=threading.RLock,
                                   init=False, repr=False, compare=False)

    def update(self, data: Optional[Dict[str, Any]]):
        with self._lock:
            self.state_data.update(clean_context(data))

    def snapshot(self) -> Context:
        with self._lock:
            return dict(self.state_data)

    def record(self, before: Context, new_state: Dict[str, Any], reward: float):
        with self._lock:
            self.last_snapshot = dict(before)
            self.state_data.update(clean_context(new_state))
            self.total_reward += reward
            self.action_count += 1

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'session_id': self.session_id,
                'state_data': dict(self.state_data),
                'last_snapshot': dict(self.last_snapshot),
                'total_reward': self.total_reward,
                'action_count': self.action_count,
                'domain_hint': self.domain_hint,
            }


Listener = Union[Callable[[str, List[ActionPrediction]], Any], Any]


class PredictionOrchestrator:
    """
    One instance per host process, passed to every call site.

    Lifecycle: UNINITIALIZED -> ACTIVE <-> STOPPED -> RELEASED.
    Stopping halts the value table and rule store without discarding what
    they learned; releasing drops sessions and listeners.
    """

    def __init__(self, config: EngineConfig = None,
                 registry: PatternRegistry = None,
                 value_table: ValueTable = None,
                 rule_store: RuleStore = None,
                 store: PreferenceStore = None):
        self.config = config or EngineConfig()
        self.registry = registry or PatternRegistry(
            mode=self.config.learning_mode,
            max_patterns=self.config.max_patterns,
            max_history=self.config.max_history,
            learning_rate=self.config.pattern_learning_rate,
            similarity_threshold=self.config.similarity_threshold,
        )
        self.value_table = value_table or ValueTable(
            domain_hint=self.config.domain_hint,
            learning_rate=self.config.learning_rate,
            discount_factor=self.config.discount_factor,
        )
        self.rule_store = rule_store or RuleStore()
        self.store = store
        self.domain_hint = self.config.domain_hint

        self.status = EngineStatus.UNINITIALIZED
        self._lock = threading.RLock()
        self._sessions: Dict[str, SessionState] = {}
        self._listeners: Dict[str, List[Listener]] = {}
        self._history: deque = deque(maxlen=self.config.max_history)

        self.predictions_served = 0
        self.observations_recorded = 0
        self.last_prediction_confidence = 0.0

    @property
    def active(self) -> bool:
        return self.status == EngineStatus.ACTIVE

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def start(self):
        with self._lock:
            if self.active:
                return
            self.value_table.start()
            self.rule_store.start()
            self.status = EngineStatus.ACTIVE
        logger.info("Prediction engine started")

    def stop(self):
        with self._lock:
            if not self.active:
                return
            self.value_table.stop()
            self.rule_store.stop()
            self.status = EngineStatus.STOPPED
        logger.info("Prediction engine stopped")

    def release(self):
        with self._lock:
            self.value_table.stop()
            self.rule_store.stop()
            self._sessions.clear()
            self._listeners.clear()
            self.status = EngineStatus.RELEASED
        logger.info("Prediction engine released")

    def set_domain_hint(self, hint: str, session_id: Optional[str] = None):
        if not hint:
            return
        if session_id is not None:
            session = self.get_session(session_id)
            if session is not None:
                session.domain_hint = hint
            return
        self.domain_hint = hint
        self.value_table.set_domain_hint(hint)
        logger.info(f"Domain hint set to {hint}")

    # ── Sessions ──────────────────────────────────────────────────────────

    def _session(self, session_id: str) -> SessionState:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = SessionState(session_id)
                self._sessions[session_id] = session
                logger.debug(f"Created session {session_id}")
            return session

    def get_session(self, session_id: str) -> Optional[SessionState]:
        with self._lock:
            return self._sessions.get(session_id)

    def clear_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def sessions(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def history(self) -> List[Observation]:
        with self._lock:
            return list(self._history)

    # ── Prediction ────────────────────────────────────────────────────────

    def predict(self, session_id: str, state: Optional[Dict[str, Any]] = None) -> List[ActionPrediction]:
        """Ranked predictions for a session; never empty while active"""
        if not self.active:
            return []
        if not isinstance(session_id, str) or not session_id:
            logger.warning(f"Rejected prediction request for session {session_id!r}")
            return []
        if state is not None and not isinstance(state, dict):
            logger.warning(f"Rejected non-mapping state for session {session_id}")
            return []

        try:
            session = self._session(session_id)
            session.update(state)
            predictions = self._generate(session)
        except Exception as e:
            logger.error(f"Prediction failed for session {session_id}: {e}")
            return []

        with self._lock:
            self.predictions_served += 1
            self.last_prediction_confidence = predictions[0].confidence
        self._notify(session_id, predictions)
        return predictions

    def _generate(self, session: SessionState) -> List[ActionPrediction]:
        current = session.snapshot()
        predictions = [
            ActionPrediction.from_recommendation(rec)
            for rec in self.value_table.recommend(current)
        ]

        for prediction in predictions:
            outcome = self.rule_store.predict_outcome(session.session_id, current, prediction.action)
            if 'predicted_reward' not in outcome:
                continue
            predicted_reward = outcome['predicted_reward']
            if predicted_reward > 0:
                prediction.confidence = min(1.0, prediction.confidence + RULE_NUDGE)
                prediction.add_reasoning("Rule system predicts positive outcome")
            elif predicted_reward < 0:
                prediction.confidence = max(0.0, prediction.confidence - RULE_NUDGE)
                prediction.add_reasoning("Rule system predicts negative outcome")

        predictions.sort(key=lambda p: p.confidence, reverse=True)

        if not predictions:
            action, reasoning = default_action(session.domain_hint or self.domain_hint)
            predictions.append(ActionPrediction(action, DEFAULT_CONFIDENCE, reasoning))
        return predictions

    def predict_best(self, session_id: str, state: Optional[Dict[str, Any]] = None) -> Optional[ActionPrediction]:
        predictions = self.predict(session_id, state)
        return predictions[0] if predictions else None

    # ── Learning ──────────────────────────────────────────────────────────

    def observe(self, session_id: str, action: str, reward: float,
                new_state: Optional[Dict[str, Any]]) -> bool:
        """Record the outcome of an action taken in a known session"""
        if not self.active:
            return False
        if not action or not isinstance(new_state, dict):
            logger.warning(f"Rejected observation for session {session_id!r}: missing action or state")
            return False
        session = self.get_session(session_id)
        if session is None:
            return False

        try:
            reward = float(reward)
            if not math.isfinite(reward):
                logger.warning(f"Rejected non-finite reward for session {session_id}")
                return False
            before = session.snapshot()
            observation = Observation.of(before, action, new_state, reward)

            self.rule_store.record(session_id, observation)
            self.value_table.update(before, action, reward, observation.after_state)
            if before:
                self.registry.observe_context(action, before)

            session.record(before, observation.after_state, reward)
            with self._lock:
                self._history.append(observation)
                self.observations_recorded += 1
            return True
        except Exception as e:
            logger.error(f"Observation failed for session {session_id}: {e}")
            return False

    def feedback(self, session_id: str, action: str, success: bool,
                 params: Optional[Dict[str, Any]] = None) -> bool:
        """Report whether an executed action achieved what was intended"""
        if not self.active or not action:
            return False

        try:
            self.registry.record_action_result(action, params, bool(success))
            session = self.get_session(session_id)
            context = session.snapshot() if session is not None else clean_context(params)
            key = self.registry.best_match(action, context)
            if key is not None:
                self.registry.record_pattern_outcome(key, bool(success))
            return True
        except Exception as e:
            logger.error(f"Feedback failed for session {session_id}: {e}")
            return False

    def suggest(self, context: Optional[Dict[str, Any]], limit: int = 5) -> List[ActionSuggestion]:
        if not self.active:
            return []
        try:
            return self.registry.suggest_actions(context, limit)
        except Exception as e:
            logger.error(f"Suggestion lookup failed: {e}")
            return []

    # ── Listeners ─────────────────────────────────────────────────────────

    def subscribe(self, session_id: str, listener: Listener) -> bool:
        if not session_id or listener is None:
            return False
        with self._lock:
            listeners = self._listeners.setdefault(session_id, [])
            if listener not in listeners:
                listeners.append(listener)
        return True

    def unsubscribe(self, session_id: str, listener: Listener) -> bool:
        with self._lock:
            listeners = self._listeners.get(session_id, [])
            if listener not in listeners:
                return False
            listeners.remove(listener)
            if not listeners:
                del self._listeners[session_id]
        return True

    def listener_count(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._listeners.values())

    def _notify(self, session_id: str, predictions: List[ActionPrediction]):
        with self._lock:
            listeners = list(self._listeners.get(session_id, []))
        for listener in listeners:
            try:
                callback = getattr(listener, 'on_predictions', listener)
                callback(session_id, list(predictions))
            except Exception as e:
                logger.error(f"Listener for session {session_id} failed: {e}")

    # ── Persistence & stats ───────────────────────────────────────────────

    def _store(self) -> Optional[PreferenceStore]:
        if self.store is None and self.config.store_path:
            self.store = open_store(self.config.store_path)
        return self.store

    def save(self) -> bool:
        try:
            store = self._store()
        except Exception as e:
            logger.error(f"Preference store unavailable: {e}")
            return False
        if store is None:
            return False
        return self.registry.save(store)

    def load(self) -> bool:
        try:
            store = self._store()
        except Exception as e:
            logger.error(f"Preference store unavailable: {e}")
            return False
        if store is None:
            return False
        return self.registry.load(store)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            summary = {
                'status': self.status.value,
                'domain_hint': self.domain_hint,
                'sessions': len(self._sessions),
                'listeners': sum(len(v) for v in self._listeners.values()),
                'history_size': len(self._history),
                'predictions_served': self.predictions_served,
                'observations_recorded': self.observations_recorded,
                'last_prediction_confidence': self.last_prediction_confidence,
            }
        summary['registry'] = self.registry.metrics()
        summary['value_table'] = self.value_table.info()
        summary['rules'] = self.rule_store.stats()
        return summary
