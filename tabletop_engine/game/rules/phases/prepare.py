# tabletop_engine/game/rules/phases/prepare.py
import inspect
import logging
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from tabletop_engine.config import EngineSettings
from tabletop_engine.exceptions import ValidationError
from tabletop_engine.game.models.check_models import Check, CheckType, DiceSystem, create_check
from tabletop_engine.game.rules.check_context import CheckContext
from tabletop_engine.game.rules.hooks import HookBus, HookEvent, HookRegistry, PrepareCheckPayload
from tabletop_engine.game.rules.resolvers.d6_resolver import prepare_d6_check
from tabletop_engine.game.rules.resolvers.dice_pool_resolver import prepare_pool_check
from tabletop_engine.game.rules.validation import validate_check

logger = logging.getLogger(__name__)

CheckConfig = Union[Callable[[Check], Any], Mapping[str, Any]]


class PreparePhase:
    """
    Builds a Check: defaults, subsystem baseline, prepare hooks, then the caller's
    config last.
    """

    def __init__(self, hooks: HookBus, registry: HookRegistry, settings: EngineSettings):
        self._hooks = hooks
        self._registry = registry
        self._settings = settings

    async def prepare(self, check_type: Union[CheckType, str], context: CheckContext,
                      config: Optional[CheckConfig] = None) -> Check:
        try:
            check_type = CheckType(check_type)
        except ValueError as e:
            raise ValidationError(f"Unknown check type: {check_type}") from e

        check = create_check(check_type)
        try:
            if check.dice_system == DiceSystem.POOL:
                await prepare_pool_check(check, context)
            elif check.dice_system == DiceSystem.D6:
                await prepare_d6_check(check, context)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {check_type.value} check data: {e}") from e
        validate_check(check)

        def register(callback: Callable[[Check], Any], priority: int = 0) -> None:
            self._registry.register(check.id, callback, priority)

        try:
            await self._hooks.call_all(
                HookEvent.PREPARE_CHECK,
                PrepareCheckPayload(check=check, actor=context.actor, item=context.item, register=register),
            )
            await self._registry.run_all(check.id, check)
        finally:
            # one-shot callbacks never outlive their check, even when a hook raised
            self._registry.discard(check.id)

        if config is not None:
            await self._apply_config(check, config)

        validate_check(check)
        logger.debug(f"PreparePhase: Check {check.id} ready with {len(check.modifiers)} modifier(s).")
        return check

    async def _apply_config(self, check: Check, config: CheckConfig) -> None:
        try:
            if callable(config):
                outcome = config(check)
                if inspect.isawaitable(outcome):
                    await outcome
            else:
                for field_name, value in config.items():
                    if field_name == "modifiers":
                        for modifier in value:
                            if isinstance(modifier, Mapping):
                                check.add_modifier(**modifier)
                            else:
                                check.modifiers.append(modifier)
                    else:
                        setattr(check, field_name, value)
        except PydanticValidationError as e:
            raise ValidationError(f"Check config produced invalid data: {e}") from e
