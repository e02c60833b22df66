# tabletop_engine/game/rules/critical.py
from collections import Counter
from typing import Any, Iterable, List

from tabletop_engine.game.models.check_models import AdvantageState
from tabletop_engine.game.models.dice_models import DiceOutcome


def has_matching_dice(faces: Iterable[int], threshold: int) -> bool:
    """True if at least two dice show the same face and that face is >= threshold."""
    faces = list(faces)
    if len(faces) < 2:
        return False
    counts = Counter(face for face in faces if face >= threshold)
    return any(count >= 2 for count in counts.values())


def count_successes(faces: Iterable[int], success_min: int = 4, success_max: int = 6) -> int:
    return sum(1 for face in faces if success_min <= face <= success_max)


def critical_faces(outcome: DiceOutcome, advantage_state: AdvantageState) -> List[int]:
    """
    Faces inspected for a 2d6 critical: the kept dice, or every rolled die under
    Advantage so that dropping a die can never hide a matching pair.
    """
    if advantage_state == AdvantageState.ADVANTAGE:
        return outcome.faces()
    return outcome.active_faces()


def is_d6_critical(outcome: DiceOutcome, threshold: int, advantage_state: AdvantageState) -> bool:
    return has_matching_dice(critical_faces(outcome, advantage_state), threshold)


def crit_threshold_for(actor: Any, default: int = 7) -> int:
    """The actor's 'crit' stat value, or the default when the actor has none."""
    value = actor.get_stat_value("crit") if actor is not None else None
    return default if value is None else int(value)
