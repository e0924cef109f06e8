"""
Domain hints - coarse classification of what kind of target is being learned.

The hint decides two priors: which action vocabulary a fresh value-table row
is seeded with, and which action is offered when nothing has been learned yet.
"""

from enum import Enum
from typing import Dict, List, Tuple


class DomainType(Enum):
    PUZZLE = "puzzle"
    CARD = "card"
    BOARD = "board"
    ARCADE = "arcade"
    WORD = "word"
    STRATEGY = "strategy"
    SIMULATION = "simulation"
    RPG = "rpg"
    ADVENTURE = "adventure"
    ACTION = "action"
    SPORTS = "sports"
    RACING = "racing"
    EDUCATIONAL = "educational"
    CASUAL = "casual"
    MOBA = "moba"
    FIGHTING = "fighting"
    SHOOTER = "shooter"
    PLATFORMER = "platformer"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str) -> 'DomainType':
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def requires_quick_reflexes(self) -> bool:
        return self in REFLEX_DOMAINS

    @property
    def is_strategic(self) -> bool:
        return self in STRATEGIC_DOMAINS


REFLEX_DOMAINS = {
    DomainType.ACTION, DomainType.ARCADE, DomainType.SHOOTER,
    DomainType.PLATFORMER, DomainType.RACING, DomainType.FIGHTING,
}

STRATEGIC_DOMAINS = {
    DomainType.STRATEGY, DomainType.BOARD, DomainType.RPG, DomainType.MOBA,
}

# Keyword -> domain, checked in order against an application identifier
IDENTIFIER_KEYWORDS: List[Tuple[Tuple[str, ...], DomainType]] = [
    (("leagueoflegends", "mobilelegends", "dota2", "vainglory", "pokemonunite"), DomainType.MOBA),
    (("pubg", "freefire", "shooter"), DomainType.SHOOTER),
    (("clashofclans", "clashroyale", "boombeach", "strategy"), DomainType.STRATEGY),
    (("puzzle", "match3", "candy", "block", "tetris"), DomainType.PUZZLE),
    (("card", "poker", "hearthstone", "solitaire"), DomainType.CARD),
    (("chess", "checkers", "board", "backgammon", "monopoly"), DomainType.BOARD),
    (("rpg", "roleplay", "genshinimpact"), DomainType.RPG),
    (("racing", "asphalt", "needforspeed"), DomainType.RACING),
    (("sport", "fifa", "football", "basketball", "soccer", "tennis", "golf"), DomainType.SPORTS),
    (("arcade", "fruitninja", "jetpack", "templerun", "mario"), DomainType.ARCADE),
    (("education", "learn", "quiz", "trivia", "brain"), DomainType.EDUCATIONAL),
    (("adventure", "explore", "quest", "minecraft"), DomainType.ADVENTURE),
    (("game", "casual", "play"), DomainType.CASUAL),
]


def classify_identifier(identifier: str) -> DomainType:
    """Guess a domain from an application/package identifier"""
    if not identifier:
        return DomainType.UNKNOWN
    identifier = identifier.lower()
    for keywords, domain in IDENTIFIER_KEYWORDS:
        if any(k in identifier for k in keywords):
            return domain
    return DomainType.UNKNOWN


# Seed priors for a first-visit value-table row
REFLEX_VOCABULARY: Dict[str, float] = {
    'move_left': 0.2, 'move_right': 0.2, 'move_up': 0.2, 'move_down': 0.2,
    'jump': 0.3, 'attack': 0.4, 'use_item': 0.1,
}

PLANNING_VOCABULARY: Dict[str, float] = {
    'select': 0.3, 'place': 0.3, 'rotate': 0.2, 'combine': 0.2, 'analyze': 0.4,
}

DIALOGUE_VOCABULARY: Dict[str, float] = {
    'talk': 0.3, 'examine': 0.3, 'open_inventory': 0.2, 'equip_item': 0.2, 'use_skill': 0.3,
}

DEFAULT_VOCABULARY: Dict[str, float] = {
    'tap_center': 0.3, 'swipe_up': 0.2, 'swipe_down': 0.2, 'swipe_left': 0.2,
    'swipe_right': 0.2, 'wait': 0.1, 'explore': 0.3,
}


def seed_vocabulary(hint: str) -> Dict[str, float]:
    """Fresh copy of the action priors matching a domain hint (substring match)"""
    hint = (hint or "").lower()
    if "action" in hint or "arcade" in hint:
        return dict(REFLEX_VOCABULARY)
    if "strategy" in hint or "puzzle" in hint:
        return dict(PLANNING_VOCABULARY)
    if "rpg" in hint:
        return dict(DIALOGUE_VOCABULARY)
    return dict(DEFAULT_VOCABULARY)


def default_action(hint: str) -> Tuple[str, str]:
    """(action, reasoning) offered when nothing else can be recommended"""
    domain = DomainType.from_string(hint)
    if domain.requires_quick_reflexes:
        return "tap_center", "Default action for a fast-paced game"
    if domain.is_strategic:
        return "analyze", "Default action for a strategic game"
    return "explore", "Default action for an unfamiliar game"
