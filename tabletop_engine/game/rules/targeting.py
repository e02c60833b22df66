# tabletop_engine/game/rules/targeting.py
from typing import List, Optional, Sequence

from tabletop_engine.config import EngineSettings
from tabletop_engine.game.models.check_models import CheckResult, CheckType, TargetedIndividual, TargetResult
from tabletop_engine.game.rules.check_context import TargetContext


def classify_target(
    roll_total: int,
    avoid: Optional[int],
    critical: bool,
    auto_success: bool,
    settings: EngineSettings,
) -> TargetResult:
    """
    Hit/miss/crit/fumble against one target.

    Auto-success always lands (crit if the roll was critical). Otherwise a fumble
    beats everything, then a critical, then the roll is compared to the target's avoid.
    """
    is_critical = critical or roll_total == settings.critical_total
    if auto_success:
        return TargetResult.CRIT if is_critical else TargetResult.HIT
    if roll_total <= settings.fumble_total:
        return TargetResult.FUMBLE
    if is_critical:
        return TargetResult.CRIT
    target_avoid = avoid or settings.default_avoid
    return TargetResult.HIT if roll_total >= target_avoid else TargetResult.MISS


def classify_targets(
    result: CheckResult,
    targets: Sequence[TargetContext],
    settings: EngineSettings,
) -> Optional[List[TargetedIndividual]]:
    """Builds targeted_individuals for an accuracy result. Other check types get None."""
    if result.type != CheckType.ACCURACY or not targets:
        return None
    roll_total = result.roll.total if result.roll is not None else 0
    individuals = []
    for target in targets:
        outcome = classify_target(
            roll_total,
            target.actor.get_stat_value("avoid"),
            result.critical,
            result.auto_success,
            settings,
        )
        individuals.append(TargetedIndividual(
            actor_ref=target.actor.ref,
            token_ref=target.token_ref,
            name=target.actor.name,
            result=outcome,
        ))
    return individuals or None


def reclassify_targets(result: CheckResult, settings: EngineSettings, avoid_by_ref: Optional[dict] = None) -> None:
    """
    Re-judges existing targeted_individuals after a reroll. Avoid values come from
    avoid_by_ref when known, else the default avoid.
    """
    if not result.targeted_individuals:
        return
    roll_total = result.roll.total if result.roll is not None else 0
    avoid_by_ref = avoid_by_ref or {}
    result.targeted_individuals = [
        target.model_copy(update={"result": classify_target(
            roll_total, avoid_by_ref.get(target.actor_ref), result.critical, result.auto_success, settings
        )})
        for target in result.targeted_individuals
    ]
