# tabletop_engine/game/rules/validation.py
from typing import Any

from tabletop_engine.exceptions import ValidationError
from tabletop_engine.game.models.check_models import (
    AdvantageState, Attribute, Check, CheckResult, DiceSystem, DICE_SYSTEM_BY_TYPE, Modifier
)
from tabletop_engine.game.models.dice_models import DiceOutcome

_ATTRIBUTE_KEYS = {a.value for a in Attribute}


def validate_check(check: Any) -> bool:
    """
    Validates a prepared Check.

    Hooks can append to ``modifiers`` or edit ``additional_data`` without going
    through pydantic assignment validation, so the whole object is checked again here.

    Raises:
        ValidationError: On the first problem found.
    """
    if not isinstance(check, Check):
        raise ValidationError("Check object is required")
    if not check.id or not isinstance(check.id, str):
        raise ValidationError("Check must have a valid ID")
    if DICE_SYSTEM_BY_TYPE.get(check.type) != check.dice_system:
        raise ValidationError(f"Invalid dice system '{check.dice_system}' for check type '{check.type}'")
    if not isinstance(check.modifiers, list):
        raise ValidationError("Check modifiers must be a list")

    for modifier in check.modifiers:
        if not isinstance(modifier, Modifier):
            raise ValidationError(f"Each modifier must be a Modifier, got {type(modifier).__name__}")
        if not modifier.label or not isinstance(modifier.label, str):
            raise ValidationError("Each modifier must have a label")
        if isinstance(modifier.value, bool) or not isinstance(modifier.value, int):
            raise ValidationError(f"Modifier '{modifier.label}' must have an integer value")

    if check.dice_system == DiceSystem.POOL:
        if check.primary and check.primary not in _ATTRIBUTE_KEYS:
            raise ValidationError(f"Invalid primary attribute: {check.primary}")
        if check.secondary and check.secondary not in _ATTRIBUTE_KEYS:
            raise ValidationError(f"Invalid secondary attribute: {check.secondary}")

    if check.dice_system == DiceSystem.D6:
        if check.advantage_state is not None and not isinstance(check.advantage_state, AdvantageState):
            raise ValidationError(f"Invalid advantage state: {check.advantage_state}")

    return True


def validate_check_result(result: Any) -> bool:
    """Raises ValidationError if a CheckResult breaks its invariants."""
    if not isinstance(result, CheckResult):
        raise ValidationError("CheckResult object is required")
    if not result.id or not isinstance(result.id, str):
        raise ValidationError("CheckResult must have a valid ID")
    if DICE_SYSTEM_BY_TYPE.get(result.type) != result.dice_system:
        raise ValidationError(f"Invalid dice system '{result.dice_system}' for result type '{result.type}'")
    if not result.actor_ref or not isinstance(result.actor_ref, str):
        raise ValidationError("CheckResult must have a valid actor reference")

    if result.dice_system != DiceSystem.DISPLAY and not isinstance(result.roll, DiceOutcome):
        raise ValidationError("CheckResult must have a valid dice outcome")
    if result.roll is not None and not isinstance(result.roll, DiceOutcome):
        raise ValidationError("Display CheckResult roll must be a valid dice outcome if present")

    if isinstance(result.final_result, bool) or not isinstance(result.final_result, int):
        raise ValidationError("CheckResult must have a numeric final result")
    if not isinstance(result.critical, bool):
        raise ValidationError("CheckResult critical flag must be boolean")
    if not isinstance(result.fumble, bool):
        raise ValidationError("CheckResult fumble flag must be boolean")
    return True
