# tabletop_engine/game/rules/phases/process.py
import logging

from tabletop_engine.config import EngineSettings
from tabletop_engine.exceptions import ValidationError
from tabletop_engine.game.models.check_models import Check, CheckResult, DiceSystem, create_check_result
from tabletop_engine.game.rules.check_context import CheckContext
from tabletop_engine.game.rules.dice_roller import DiceRoller
from tabletop_engine.game.rules.hooks import HookBus, HookEvent, ProcessCheckPayload
from tabletop_engine.game.rules.resolvers.d6_resolver import resolve_d6_check
from tabletop_engine.game.rules.resolvers.dice_pool_resolver import resolve_pool_check
from tabletop_engine.game.rules.targeting import classify_targets
from tabletop_engine.game.rules.validation import validate_check_result

logger = logging.getLogger(__name__)


class ProcessPhase:
    """Rolls a prepared Check and produces its validated CheckResult."""

    def __init__(self, hooks: HookBus, roller: DiceRoller, settings: EngineSettings):
        self._hooks = hooks
        self._roller = roller
        self._settings = settings

    async def process(self, check: Check, context: CheckContext) -> CheckResult:
        actor = context.actor
        item = context.item
        result = create_check_result(check, actor_ref=actor.ref, item_ref=item.ref if item else None)
        result.modifier_total = sum(m.value for m in check.modifiers)

        if check.dice_system == DiceSystem.POOL:
            await resolve_pool_check(check, result, actor, self._roller, self._settings)
        elif check.dice_system == DiceSystem.D6:
            await resolve_d6_check(check, result, actor, item, self._roller, self._settings)
        elif check.dice_system == DiceSystem.DISPLAY:
            if context.roll is not None:
                result.roll = context.roll
                result.final_result = context.roll.total or 0
            else:
                result.final_result = 0
        else:
            raise ValidationError(f"Unknown dice system: {check.dice_system}")

        result.targeted_individuals = classify_targets(result, context.targets, self._settings)
        validate_check_result(result)

        await self._hooks.call_all(
            HookEvent.PROCESS_CHECK,
            ProcessCheckPayload(result=result, actor=actor, item=item),
        )
        logger.info(
            f"ProcessPhase: {result.type.value} check {result.id} for {result.actor_ref} -> "
            f"{result.final_result} (critical={result.critical}, fumble={result.fumble})."
        )
        return result
