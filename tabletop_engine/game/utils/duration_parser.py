# tabletop_engine/game/utils/duration_parser.py
import re
from typing import Optional, Dict, Any

from tabletop_engine.game.models.effect_models import SpecialDuration

_NUMERIC_DURATION_RE = re.compile(r'^(\d+)([tr])$', re.IGNORECASE)

SPECIAL_DURATIONS: Dict[str, SpecialDuration] = {
    "combat-end": SpecialDuration.REMOVE_ON_COMBAT_END,
    "ce": SpecialDuration.REMOVE_ON_COMBAT_END,
}


def parse_duration(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parses duration shorthand.

    "3t" -> {"turns": 3}, "2r" -> {"rounds": 2},
    "ce" / "combat-end" -> {"special_duration": "removeOnCombatEnd"}.
    Anything else -> None.
    """
    if not text:
        return None
    cleaned = text.strip().lower()

    special = SPECIAL_DURATIONS.get(cleaned)
    if special:
        return {"special_duration": special.value}

    match = _NUMERIC_DURATION_RE.match(cleaned)
    if not match:
        return None
    value, unit = match.groups()
    return {"turns" if unit == "t" else "rounds": int(value)}
