# tabletop_engine/game/models/status_conditions.py
import logging
from typing import Optional, Dict, List

from pydantic import BaseModel, Field

from tabletop_engine.game.models.effect_models import (
    EffectData, EffectDuration, EffectFlags, SpecialDuration, StackMode
)

logger = logging.getLogger(__name__)


class StatusCondition(BaseModel):
    """A named effect template that can be applied by id."""
    id: str
    name: str
    icon: str
    description: str = ""
    category: str = "general"
    turns: Optional[int] = None
    rounds: Optional[int] = None
    stackable: bool = False
    max_stacks: Optional[int] = Field(None, ge=1)
    stack_mode: StackMode = StackMode.ADD
    special_duration: Optional[SpecialDuration] = None


def _condition(id: str, name: str, icon: str, category: str, description: str, **kwargs) -> StatusCondition:
    return StatusCondition(id=id, name=name, icon=icon, category=category, description=description, **kwargs)


STATUS_CONDITIONS: Dict[str, StatusCondition] = {c.id: c for c in [
    # Physical
    _condition("bleeding", "Bleeding", "icons/svg/blood.svg", "physical",
               "Loses health at the start of each turn.", turns=3, stackable=True),
    _condition("stunned", "Stunned", "icons/svg/daze.svg", "physical",
               "Loses the next action.", turns=1),
    _condition("sleep", "Sleep", "icons/svg/sleep.svg", "physical",
               "Cannot act until woken.", turns=3),
    _condition("restrained", "Restrained", "icons/svg/net.svg", "physical",
               "Accuracy and avoid are reduced.", turns=3),
    # Mental
    _condition("charmed", "Charmed", "icons/svg/stoned.svg", "mental",
               "Treats the charmer as an ally.", turns=3),
    _condition("dazed", "Dazed", "icons/svg/daze.svg", "mental",
               "Accuracy is reduced.", turns=3),
    _condition("despair", "Despair", "icons/svg/falling.svg", "mental",
               "Cannot recover resources.", turns=3),
    _condition("rage", "Rage", "icons/svg/terror.svg", "mental",
               "Must attack the nearest creature.", turns=3),
    # Magical
    _condition("cursed", "Cursed", "icons/svg/skull.svg", "magical",
               "Lasts until the end of the encounter.",
               special_duration=SpecialDuration.REMOVE_ON_COMBAT_END),
    _condition("empowered", "Empowered", "icons/svg/upgrade.svg", "magical",
               "Power is increased.", turns=3),
    _condition("focused", "Focused", "icons/svg/target.svg", "magical",
               "Accuracy is increased.", turns=3),
    _condition("unraveled", "Unraveled", "icons/svg/lever.svg", "magical",
               "Resistances are downgraded.", turns=3),
    # Sensory
    _condition("invisible", "Invisible", "icons/svg/invisible.svg", "sensory",
               "Avoid is increased.", turns=3),
    _condition("silenced", "Silenced", "icons/svg/silenced.svg", "sensory",
               "Cannot use spoken abilities.", turns=3),
    # Health
    _condition("infected", "Infected", "icons/svg/poison.svg", "health",
               "Healing is reduced.", turns=3, stackable=True),
    # Negotiation
    _condition("guarded", "Guarded", "icons/svg/shield.svg", "negotiation",
               "Defense is increased.", turns=3),
    _condition("unguarded", "Unguarded", "icons/svg/mage-shield.svg", "negotiation",
               "Defense is reduced.", turns=3),
]}


def get_status_condition(condition_id: str) -> Optional[StatusCondition]:
    condition = STATUS_CONDITIONS.get((condition_id or "").strip().lower())
    if condition is None:
        logger.warning(f"StatusConditions: Unknown status condition '{condition_id}'.")
    return condition


def list_status_conditions(category: Optional[str] = None) -> List[StatusCondition]:
    return [c for c in STATUS_CONDITIONS.values() if category is None or c.category == category]


def build_effect_data(
    condition: StatusCondition,
    duration_override: Optional[Dict[str, object]] = None,
) -> EffectData:
    """
    Turns a status condition into an EffectData ready for EffectProcessor.apply_effect.

    Args:
        condition: The template to apply.
        duration_override: Output of parse_duration ({'turns': n}, {'rounds': n} or
                           {'special_duration': 'removeOnCombatEnd'}). Only the unit it
                           names is replaced; the rest of the template duration stays.
    """
    turns, rounds = condition.turns, condition.rounds
    special = condition.special_duration
    if duration_override:
        if "turns" in duration_override:
            turns = int(duration_override["turns"])  # type: ignore[arg-type]
        if "rounds" in duration_override:
            rounds = int(duration_override["rounds"])  # type: ignore[arg-type]
        if duration_override.get("special_duration"):
            special = SpecialDuration(duration_override["special_duration"])

    flags = EffectFlags(special_duration=special, source_definition_id=condition.id)
    if condition.stackable:
        flags.stackable = True
        flags.stack_id = condition.id
        flags.max_stacks = condition.max_stacks
        flags.stack_mode = condition.stack_mode

    return EffectData(
        name=condition.name,
        icon=condition.icon,
        description=condition.description,
        statuses=[condition.id],
        duration=EffectDuration(turns=turns, rounds=rounds),
        flags=flags,
    )
