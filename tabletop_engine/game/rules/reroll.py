# tabletop_engine/game/rules/reroll.py
"""
Rerolls build a new CheckResult from an existing one. The original result is
deep-copied and never modified.
"""
import logging
from typing import Dict, Optional, Set

from pydantic import BaseModel, Field

from tabletop_engine.config import EngineSettings
from tabletop_engine.exceptions import ValidationError
from tabletop_engine.game.models.check_models import AdvantageState, CheckResult, DiceSystem
from tabletop_engine.game.models.dice_models import DiceOutcome
from tabletop_engine.game.rules.critical import crit_threshold_for
from tabletop_engine.game.rules.dice_roller import DiceRoller, apply_keep_rule, evaluate_roll, format_formula
from tabletop_engine.game.rules.resolvers.d6_resolver import apply_d6_outcome, base_roll_formula
from tabletop_engine.game.rules.resolvers.dice_pool_resolver import roll_pool
from tabletop_engine.game.rules.targeting import reclassify_targets

logger = logging.getLogger(__name__)


class RerollOptions(BaseModel):
    """
    What to reroll on a 2d6 result.

    reroll_dice holds 0-based positions into every rolled die, dropped ones included.
    """
    reroll_dice: Set[int] = Field(default_factory=set)
    reroll_all: bool = False
    new_modifier: Optional[int] = None
    advantage_state: Optional[AdvantageState] = None


async def reroll_pool_result(result: CheckResult, roller: DiceRoller, settings: EngineSettings) -> CheckResult:
    total_dice = int(result.additional_data.get("total_dice") or len(result.additional_data.get("roll_results", [])) or 1)
    crit_threshold = int(result.additional_data.get("crit_threshold") or settings.default_crit_threshold)

    outcome, successes, critical = await roll_pool(roller, total_dice, crit_threshold, settings)

    updated = result.model_copy(deep=True)
    updated.roll = outcome
    updated.final_result = successes
    updated.critical = critical
    updated.additional_data["roll_results"] = outcome.faces()
    logger.info(f"Reroll: Pool check {result.id} rerolled {total_dice}d6 -> {successes} successes.")
    return updated


async def _replace_dice(roll: DiceOutcome, positions: Set[int], roller: DiceRoller) -> DiceOutcome:
    outcome = roll.model_copy(deep=True)
    slots = [(term, die) for term in outcome.terms for die in term.results]
    invalid = sorted(p for p in positions if p < 0 or p >= len(slots))
    if invalid:
        raise ValidationError(f"Die positions {invalid} are out of range for a roll of {len(slots)} dice.")
    for position in sorted(positions):
        fresh = await evaluate_roll(roller, "1d6")
        _, die = slots[position]
        die.result = fresh.faces()[0]
        die.active = True
    for term in outcome.terms:
        apply_keep_rule(term)
    return outcome


async def reroll_d6_result(
    result: CheckResult,
    actor,
    roller: DiceRoller,
    settings: EngineSettings,
    options: RerollOptions,
    avoid_by_ref: Optional[Dict[str, Optional[int]]] = None,
) -> CheckResult:
    """
    A changed advantage state or reroll_all rolls everything again; otherwise only
    the chosen dice are replaced. A new_modifier replaces the flat bonus.
    """
    current_modifier = int(result.additional_data.get("total_bonus", 0) or 0)
    current_advantage = result.advantage_state or AdvantageState.NORMAL
    new_advantage = options.advantage_state or current_advantage
    advantage_changed = new_advantage != current_advantage
    modifier_selected = options.new_modifier is not None

    if not (options.reroll_dice or options.reroll_all or modifier_selected or advantage_changed):
        logger.warning(f"Reroll: No reroll options selected for check {result.id}.")
        raise ValidationError("No reroll options selected")

    final_modifier = options.new_modifier if options.new_modifier is not None else current_modifier
    is_infinity = bool(result.auto_success)
    crit_threshold = crit_threshold_for(actor, settings.default_crit_threshold)

    if advantage_changed or options.reroll_all:
        base_roll = base_roll_formula(new_advantage)
        outcome = await evaluate_roll(roller, format_formula(base_roll, final_modifier))
    else:
        if result.roll is None:
            raise ValidationError(f"Check {result.id} has no roll to reroll")
        base_roll = result.additional_data.get("base_roll") or base_roll_formula(current_advantage)
        outcome = await _replace_dice(result.roll, options.reroll_dice, roller)
        outcome.formula = format_formula(base_roll, final_modifier)
        outcome.constant = final_modifier
        outcome.recompute_total()

    updated = result.model_copy(deep=True)
    updated.additional_data["base_roll"] = base_roll
    if modifier_selected:
        # the new modifier is the whole bonus; modifiers stay as recorded, so the flat part absorbs the difference
        updated.flat_bonus = final_modifier - updated.modifier_total
    apply_d6_outcome(updated, outcome, new_advantage, final_modifier, crit_threshold, is_infinity, settings)
    reclassify_targets(updated, settings, avoid_by_ref)
    logger.info(
        f"Reroll: 2d6 check {result.id} rerolled ({'full' if advantage_changed or options.reroll_all else 'partial'}) "
        f"-> {updated.final_result}, critical={updated.critical}."
    )
    return updated


async def reroll_result(
    result: CheckResult,
    actor,
    roller: DiceRoller,
    settings: EngineSettings,
    options: Optional[RerollOptions] = None,
    avoid_by_ref: Optional[Dict[str, Optional[int]]] = None,
) -> CheckResult:
    if result.dice_system == DiceSystem.POOL:
        return await reroll_pool_result(result, roller, settings)
    if result.dice_system == DiceSystem.D6:
        return await reroll_d6_result(result, actor, roller, settings, options or RerollOptions(), avoid_by_ref)
    raise ValidationError(f"{result.type.value} checks cannot be rerolled")
