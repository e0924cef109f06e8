"""
Context Action Learner - Online action prediction from situational context

Learns which action is taken in which situation and refines its beliefs
from observed outcomes, one observation at a time:
1. Context patterns - fuzzy matching of situations to previously seen actions
2. Pattern lifecycle - confidence scoring, mode gating, capacity-bounded eviction
3. Value table - tabular TD learning over discretized states
4. Rule induction - condition -> effect rules extracted from state transitions

The PredictionOrchestrator composes them into one predict/observe/feedback loop.
"""

from .values import Value, Context, get_number, get_int, get_string, get_bool
from .pattern import ContextPattern
from .memory import LearningMode, ConfidenceLevel, ActionSuggestion, PatternRegistry
from .domains import DomainType, classify_identifier, seed_vocabulary, default_action
from .value_table import ActionRecommendation, ValueTable, discretize
from .rules import Observation, Rule, RuleStore
from .config import EngineConfig
from .storage import (PreferenceStore, MemoryPreferenceStore, JsonPreferenceStore,
                      RedisPreferenceStore, StorageError, open_store)
from .engine import EngineStatus, ActionPrediction, SessionState, PredictionOrchestrator

__all__ = [
    'Value',
    'Context',
    'get_number',
    'get_int',
    'get_string',
    'get_bool',
    'ContextPattern',
    'LearningMode',
    'ConfidenceLevel',
    'ActionSuggestion',
    'PatternRegistry',
    'DomainType',
    'classify_identifier',
    'seed_vocabulary',
    'default_action',
    'ActionRecommendation',
    'ValueTable',
    'discretize',
    'Observation',
    'Rule',
    'RuleStore',
    'EngineConfig',
    'PreferenceStore',
    'MemoryPreferenceStore',
    'JsonPreferenceStore',
    'RedisPreferenceStore',
    'StorageError',
    'open_store',
    'EngineStatus',
    'ActionPrediction',
    'SessionState',
    'PredictionOrchestrator',
]
