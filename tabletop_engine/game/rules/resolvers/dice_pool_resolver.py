# tabletop_engine/game/rules/resolvers/dice_pool_resolver.py
"""
Success-counting dice pools for attribute and skill checks.

Pool size comes from attribute ticks (and skill ticks for skill checks); each d6
showing a success face counts once. The result is the number of successes.
"""
import logging
from typing import Optional

from tabletop_engine.config import EngineSettings
from tabletop_engine.game.contracts import ActorAccessor
from tabletop_engine.game.models.check_models import Check, CheckResult, CheckType, PoolComponent
from tabletop_engine.game.rules.check_context import CheckContext
from tabletop_engine.game.rules.critical import count_successes, crit_threshold_for, has_matching_dice
from tabletop_engine.game.rules.dice_roller import DiceRoller, evaluate_roll

logger = logging.getLogger(__name__)


def _tick_or_one(actor: ActorAccessor, attribute: Optional[str]) -> int:
    # a missing attribute counts as 1 die; an explicit 0 stays 0
    tick = actor.get_attribute_tick(attribute) if attribute else None
    return 1 if tick is None else tick


async def prepare_pool_check(check: Check, context: CheckContext) -> None:
    """Fills primary/secondary dice counts and base_dice into check.additional_data."""
    actor = context.actor
    check.primary = context.primary
    check.secondary = context.secondary

    if check.type == CheckType.SKILL and context.skill is not None:
        skill = context.skill
        primary_dice = skill.ticks or 0
        secondary_dice = _tick_or_one(actor, check.primary)
        check.additional_data["skill"] = {"id": skill.id, "name": skill.name, "ticks": skill.ticks}
    else:
        primary_dice = _tick_or_one(actor, check.primary)
        secondary_dice = _tick_or_one(actor, check.secondary) if check.secondary else 0

    check.additional_data["primary_dice"] = primary_dice
    check.additional_data["secondary_dice"] = secondary_dice
    check.additional_data["base_dice"] = primary_dice + secondary_dice
    logger.debug(f"DicePool: Prepared {check.type.value} check {check.id} with {primary_dice}+{secondary_dice} base dice.")


async def roll_pool(roller: DiceRoller, total_dice: int, crit_threshold: int, settings: EngineSettings):
    """Rolls total_dice d6 and returns (outcome, successes, critical)."""
    outcome = await evaluate_roll(roller, f"{total_dice}d6")
    faces = outcome.faces()
    successes = count_successes(faces, settings.success_min, settings.success_max)
    critical = has_matching_dice(faces, crit_threshold)
    return outcome, successes, critical


async def resolve_pool_check(
    check: Check,
    result: CheckResult,
    actor: ActorAccessor,
    roller: DiceRoller,
    settings: EngineSettings,
) -> None:
    base_dice = int(check.additional_data.get("base_dice", 0))
    total_dice = max(1, base_dice + result.modifier_total)
    crit_threshold = crit_threshold_for(actor, settings.default_crit_threshold)

    outcome, successes, critical = await roll_pool(roller, total_dice, crit_threshold, settings)

    primary_dice = int(check.additional_data.get("primary_dice", 0))
    secondary_dice = int(check.additional_data.get("secondary_dice", 0))
    skill = check.additional_data.get("skill")
    if check.type == CheckType.SKILL and skill:
        # primary is the skill, secondary its governing attribute
        result.primary = PoolComponent(attribute=skill["name"], dice=primary_dice, result=primary_dice)
        result.secondary = PoolComponent(attribute=check.primary, dice=secondary_dice, result=secondary_dice)
    else:
        result.primary = PoolComponent(attribute=check.primary, dice=primary_dice, result=primary_dice)
        if check.secondary:
            result.secondary = PoolComponent(attribute=check.secondary, dice=secondary_dice, result=secondary_dice)

    result.roll = outcome
    result.final_result = successes
    result.critical = critical
    result.additional_data["roll_results"] = outcome.faces()
    result.additional_data["total_dice"] = total_dice
    result.additional_data["crit_threshold"] = crit_threshold
    logger.debug(
        f"DicePool: Check {check.id} rolled {total_dice}d6 {outcome.faces()} -> "
        f"{successes} successes, critical={critical}."
    )
