# tabletop_engine/game/rules/resolvers/d6_resolver.py
"""
Total-based 2d6 rolls for accuracy and initiative checks, with advantage
(3d6 keep highest 2) and disadvantage (3d6 keep lowest 2).
"""
import logging
from typing import Optional

from tabletop_engine.config import EngineSettings
from tabletop_engine.game.contracts import ActorAccessor
from tabletop_engine.game.models.check_models import AdvantageState, Check, CheckResult, CheckType, ItemData
from tabletop_engine.game.models.dice_models import DiceOutcome
from tabletop_engine.game.rules.check_context import CheckContext
from tabletop_engine.game.rules.critical import crit_threshold_for, is_d6_critical
from tabletop_engine.game.rules.dice_roller import DiceRoller, evaluate_roll, format_formula

logger = logging.getLogger(__name__)

BASE_ROLLS = {
    AdvantageState.NORMAL: "2d6",
    AdvantageState.ADVANTAGE: "3d6kh2",
    AdvantageState.DISADVANTAGE: "3d6kl2",
}

TO_HIT_ITEM_TYPES = ("weapon", "ability")
TO_LAND_ITEM_TYPES = ("tactic",)


def base_roll_formula(advantage_state: Optional[AdvantageState]) -> str:
    return BASE_ROLLS.get(advantage_state or AdvantageState.NORMAL, BASE_ROLLS[AdvantageState.NORMAL])


def item_bonus(item: ItemData, actor: Optional[ActorAccessor]) -> int:
    """Item toHit/toLand plus the actor's matching stat modifier, chosen by item type."""
    if item.type in TO_HIT_ITEM_TYPES:
        return item.to_hit + (actor.get_stat_mod("toHit") if actor is not None else 0)
    if item.type in TO_LAND_ITEM_TYPES:
        return item.to_land + (actor.get_stat_mod("toLand") if actor is not None else 0)
    return 0


async def prepare_d6_check(check: Check, context: CheckContext) -> None:
    actor = context.actor
    if context.advantage_state is not None:
        check.advantage_state = context.advantage_state

    if check.type == CheckType.ACCURACY and context.item is not None:
        item = context.item
        check.flat_bonus = item_bonus(item, actor)
        check.additional_data["item"] = {"id": item.id, "name": item.name, "type": item.type}
    elif check.type == CheckType.INITIATIVE and context.attribute:
        tick = actor.get_attribute_tick(context.attribute)
        check.flat_bonus = 1 if tick is None else tick
        check.additional_data["attribute"] = context.attribute

    if check.advantage_state is None:
        check.advantage_state = AdvantageState.NORMAL
    check.base_roll = base_roll_formula(check.advantage_state)
    logger.debug(f"D6: Prepared {check.type.value} check {check.id}: {check.base_roll} + {check.flat_bonus or 0}.")


def apply_d6_outcome(
    result: CheckResult,
    outcome: DiceOutcome,
    advantage_state: AdvantageState,
    total_bonus: int,
    crit_threshold: int,
    is_infinity: bool,
    settings: EngineSettings,
) -> CheckResult:
    """
    Writes a 2d6 outcome onto a result. Shared by first rolls and rerolls.

    Auto-success replaces final_result with the sentinel but critical is always
    judged from the real dice.
    """
    result.roll = outcome
    result.advantage_state = advantage_state
    result.critical = is_d6_critical(outcome, crit_threshold, advantage_state)
    result.auto_success = is_infinity
    result.final_result = settings.auto_success_result if is_infinity else outcome.total
    result.fumble = (not is_infinity) and outcome.total <= settings.fumble_total

    result.additional_data["dice_result"] = outcome.dice_total
    result.additional_data["roll_results"] = outcome.active_faces()
    result.additional_data["crit_threshold"] = crit_threshold
    result.additional_data["total_bonus"] = total_bonus
    result.additional_data["is_infinity"] = is_infinity
    if advantage_state != AdvantageState.NORMAL:
        result.additional_data["dice_with_status"] = [
            {"value": die["value"], "dropped": not die["active"]} for die in outcome.dice_with_status()
        ]
    else:
        result.additional_data.pop("dice_with_status", None)
    return result


async def resolve_d6_check(
    check: Check,
    result: CheckResult,
    actor: ActorAccessor,
    item: Optional[ItemData],
    roller: DiceRoller,
    settings: EngineSettings,
) -> None:
    advantage_state = check.advantage_state or AdvantageState.NORMAL
    base_roll = check.base_roll or base_roll_formula(advantage_state)
    flat_bonus = check.flat_bonus or 0
    total_bonus = flat_bonus + result.modifier_total
    is_infinity = check.type == CheckType.ACCURACY and item is not None and item.is_infinity
    crit_threshold = crit_threshold_for(actor, settings.default_crit_threshold)

    outcome = await evaluate_roll(roller, format_formula(base_roll, total_bonus))

    result.flat_bonus = flat_bonus
    result.additional_data["base_roll"] = base_roll
    apply_d6_outcome(result, outcome, advantage_state, total_bonus, crit_threshold, is_infinity, settings)
    logger.debug(
        f"D6: Check {check.id} rolled {outcome.formula} {outcome.faces()} = {outcome.total} "
        f"(final {result.final_result}, critical={result.critical}, auto_success={is_infinity})."
    )
