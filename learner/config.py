"""
Engine Configuration - Construction-time settings for the learner

Settings are fixed per engine instance. They can come from code, a JSON
file, or LEARNER_* environment variables.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from .memory import LearningMode, MAX_HISTORY, MAX_PATTERNS

ENV_PREFIX = "LEARNER_"


@dataclass(frozen=True)
class EngineConfig:
    learning_mode: LearningMode = LearningMode.ACTIVE
    max_patterns: int = MAX_PATTERNS
    max_history: int = MAX_HISTORY

    # Value table (TD) settings
    learning_rate: float = 0.1
    discount_factor: float = 0.9

    # Context pattern settings
    pattern_learning_rate: float = 0.1
    similarity_threshold: float = 0.6

    domain_hint: str = "unknown"
    store_path: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'learning_mode', LearningMode.parse(self.learning_mode))
        if self.max_patterns < 1:
            raise ValueError(f"max_patterns must be positive, got {self.max_patterns}")
        if self.max_history < 1:
            raise ValueError(f"max_history must be positive, got {self.max_history}")
        for name in ('learning_rate', 'discount_factor', 'pattern_learning_rate',
                     'similarity_threshold'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EngineConfig':
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'EngineConfig':
        """Load from LEARNER_* environment variables, defaults elsewhere"""
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name, cast, default):
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw == "":
                return default
            try:
                return cast(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{name}: {raw!r}")

        return cls(
            learning_mode=get('MODE', LearningMode.parse, defaults.learning_mode),
            max_patterns=get('MAX_PATTERNS', int, defaults.max_patterns),
            max_history=get('MAX_HISTORY', int, defaults.max_history),
            learning_rate=get('LEARNING_RATE', float, defaults.learning_rate),
            discount_factor=get('DISCOUNT_FACTOR', float, defaults.discount_factor),
            pattern_learning_rate=get('PATTERN_LEARNING_RATE', float, defaults.pattern_learning_rate),
            similarity_threshold=get('SIMILARITY_THRESHOLD', float, defaults.similarity_threshold),
            domain_hint=get('DOMAIN', str, defaults.domain_hint),
            store_path=get('STORE_PATH', str, defaults.store_path),
        )

    def with_overrides(self, **changes) -> 'EngineConfig':
        """Copy with the given (non-None) fields replaced"""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'learning_mode': self.learning_mode.value,
            'max_patterns': self.max_patterns,
            'max_history': self.max_history,
            'learning_rate': self.learning_rate,
            'discount_factor': self.discount_factor,
            'pattern_learning_rate': self.pattern_learning_rate,
            'similarity_threshold': self.similarity_threshold,
            'domain_hint': self.domain_hint,
            'store_path': self.store_path,
        }

    def save(self, filepath: str):
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'EngineConfig':
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)
