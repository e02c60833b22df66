# tabletop_engine/game/managers/effect_manager.py

import logging
from typing import Optional, Dict, Any, Tuple, Union

from tabletop_engine.config import EngineSettings
from tabletop_engine.exceptions import CapacityError, ValidationError
from tabletop_engine.game.contracts import ActorAccessor, CombatClockAccessor
from tabletop_engine.game.managers.duration_manager import DurationManager
from tabletop_engine.game.managers.stack_manager import StackManager
from tabletop_engine.game.models.effect_models import (
    ApplyEffectOptions, ApplyEffectResult, ApplyStatus, EffectData, EffectInstance, NonStackable
)
from tabletop_engine.game.models.status_conditions import StatusCondition, build_effect_data, get_status_condition
from tabletop_engine.game.rules.hooks import EffectHookPayload, HookBus, HookEvent, PostCreateEffectPayload
from tabletop_engine.game.utils.duration_parser import parse_duration
from tabletop_engine.game.utils.mutation_queue import ActorMutationQueue, store_call

logger = logging.getLogger(__name__)

EFFECT_STATES = ("on", "off", "toggle", "up", "down")
_STATE_ALIASES = {"+": "up", "-": "down"}

EffectInput = Union[EffectData, Dict[str, Any]]


class EffectProcessor:
    """
    Applies effects to actors: hook vetoes, normalization, toggling, duration
    setup, stacking and creation. All writes for one actor go through the shared
    ActorMutationQueue.
    """

    def __init__(self,
                 settings: Optional[EngineSettings] = None,
                 hooks: Optional[HookBus] = None,
                 stack_manager: Optional[StackManager] = None,
                 duration_manager: Optional[DurationManager] = None,
                 queue: Optional[ActorMutationQueue] = None,
                 ):
        logger.info("Initializing EffectProcessor...")
        self._settings = settings or EngineSettings()
        self.hooks = hooks or HookBus(self._settings.hook_error_mode)
        self._queue = queue or ActorMutationQueue()
        self.stack_manager = stack_manager or StackManager(self._settings, self._queue)
        self.duration_manager = duration_manager or DurationManager(self._settings, self._queue)
        logger.info("EffectProcessor initialized.")

    def _coerce(self, effect_data: EffectInput) -> EffectData:
        if isinstance(effect_data, EffectData):
            return effect_data.model_copy(deep=True)
        if isinstance(effect_data, dict):
            return EffectData.from_document(effect_data, self._settings.flag_scope)
        raise ValidationError(f"Effect data must be EffectData or a dict, got {type(effect_data).__name__}.")

    def normalize(self, data: EffectData, options: ApplyEffectOptions) -> EffectData:
        """Fills in name, icon and origin. Returns a new EffectData."""
        normalized = data.model_copy(deep=True)
        normalized.name = normalized.name or self._settings.default_effect_name
        normalized.icon = normalized.icon or normalized.img or self._settings.default_effect_icon
        normalized.origin = options.origin or options.source_ref or normalized.origin
        return normalized

    @staticmethod
    def find_toggle_target(actor: ActorAccessor, data: EffectData) -> Optional[EffectInstance]:
        """
        The existing effect a toggle would remove: first by status id, then by name.
        Only NonStackable instances match, and stackable data never matches.
        """
        if data.flags.stackable:
            return None
        candidates = [e for e in actor.effects if isinstance(e.stacking, NonStackable)]
        if data.statuses:
            status = data.statuses[0]
            for effect in candidates:
                if status in effect.statuses:
                    return effect
        if data.name:
            for effect in candidates:
                if effect.name == data.name:
                    return effect
        return None

    async def apply_effect(self,
                           actor: ActorAccessor,
                           effect_data: EffectInput,
                           options: Optional[ApplyEffectOptions] = None,
                           combat: Optional[CombatClockAccessor] = None,
                           ) -> ApplyEffectResult:
        result, post_create = await self._apply(actor, effect_data, options or ApplyEffectOptions(), combat)
        await self._notify_created(post_create)
        return result

    async def _notify_created(self, payload: Optional[PostCreateEffectPayload]) -> None:
        # callers invoke this only after releasing the actor lock
        if payload is not None:
            await self.hooks.call_all(HookEvent.POST_CREATE_EFFECT, payload)

    async def _apply(self,
                     actor: ActorAccessor,
                     effect_data: EffectInput,
                     options: ApplyEffectOptions,
                     combat: Optional[CombatClockAccessor],
                     ) -> Tuple[ApplyEffectResult, Optional[PostCreateEffectPayload]]:
        """Runs the application up to storage. Returns the result and a pending post-create payload."""
        data = self._coerce(effect_data)

        pre_process = EffectHookPayload(actor=actor, effect_data=data, options=options)
        if not await self.hooks.call(HookEvent.PRE_PROCESS_EFFECT, pre_process):
            logger.info(f"EffectProcessor: '{data.name}' on {actor.ref} prevented before processing.")
            return ApplyEffectResult(applied=False, status=ApplyStatus.PREVENTED,
                                     message="Effect application was prevented."), None

        data = self.normalize(pre_process.effect_data, options)

        async with self._queue.hold(actor.ref):
            if options.toggle:
                existing = self.find_toggle_target(actor, data)
                if existing is not None:
                    await store_call(f"Deleting effect '{existing.name}' on {actor.ref}", actor.delete_effect(existing.id))
                    logger.info(f"EffectProcessor: Toggled '{existing.name}' off {actor.ref}.")
                    return ApplyEffectResult(applied=False, status=ApplyStatus.TOGGLED_OFF, effect=existing,
                                             message=f"{existing.name} removed."), None

            data = self.duration_manager.setup_custom_duration(data, combat)

            if data.flags.stackable:
                if not data.flags.stack_id:
                    logger.warning(
                        f"EffectProcessor: Stackable effect '{data.name}' has no stackId; applying as non-stackable."
                    )
                    data.flags.stackable = False
                    return await self._apply(actor, data, options, combat)
                try:
                    instance, created = await self.stack_manager.apply_stack(actor, data, combat)
                except CapacityError as e:
                    return ApplyEffectResult(applied=False, status=ApplyStatus.CAPACITY_REACHED, message=str(e)), None
                status = ApplyStatus.CREATED if created else ApplyStatus.STACKED
                return ApplyEffectResult(applied=True, status=status, effect=instance,
                                         message=f"{instance.name} x{instance.current_stacks}"), None

            pre_create = EffectHookPayload(actor=actor, effect_data=data, options=options)
            if not await self.hooks.call(HookEvent.PRE_CREATE_EFFECT, pre_create):
                logger.info(f"EffectProcessor: '{data.name}' on {actor.ref} prevented before creation.")
                return ApplyEffectResult(applied=False, status=ApplyStatus.PREVENTED,
                                         message="Effect creation was prevented."), None

            instance = EffectInstance.from_data(pre_create.effect_data)
            created = await store_call(
                f"Creating effect '{instance.name}' on {actor.ref}", actor.create_embedded_effect(instance)
            )
            logger.info(f"EffectProcessor: Applied '{created.name}' to {actor.ref} (id {created.id}).")

        return (ApplyEffectResult(applied=True, status=ApplyStatus.CREATED, effect=created),
                PostCreateEffectPayload(actor=actor, effect=created, options=options))

    async def set_effect_state(self,
                               actor: ActorAccessor,
                               condition_id: str,
                               state: str = "toggle",
                               duration: Optional[Union[str, Dict[str, Any]]] = None,
                               origin: Optional[str] = None,
                               combat: Optional[CombatClockAccessor] = None,
                               ) -> ApplyEffectResult:
        """
        Turns a status condition on, off or toggles it. For stackable conditions,
        'up' (or '+') adds a stack and 'down' (or '-') removes one.

        ``duration`` is either shorthand text ('3t', '2r', 'ce') or an already parsed dict.
        """
        state = _STATE_ALIASES.get(state, state)
        if state not in EFFECT_STATES:
            raise ValidationError(f"Unknown effect state '{state}'. Expected one of {', '.join(EFFECT_STATES)}.")

        condition = get_status_condition(condition_id)
        if condition is None:
            return ApplyEffectResult(applied=False, status=ApplyStatus.NOT_FOUND,
                                     message=f"Unknown status condition '{condition_id}'.")

        override = parse_duration(duration) if isinstance(duration, str) else duration
        data = build_effect_data(condition, override)
        options = ApplyEffectOptions(origin=origin)

        async with self._queue.hold(actor.ref):
            result, post_create = await self._set_state(actor, condition, state, data, options, combat)
        await self._notify_created(post_create)
        return result

    async def _set_state(self,
                         actor: ActorAccessor,
                         condition: StatusCondition,
                         state: str,
                         data: EffectData,
                         options: ApplyEffectOptions,
                         combat: Optional[CombatClockAccessor],
                         ) -> Tuple[ApplyEffectResult, Optional[PostCreateEffectPayload]]:
        if condition.stackable:
            if state == "down":
                removed = await self.stack_manager.remove_stack(actor, condition.id)
                status = ApplyStatus.STACK_REMOVED if removed else ApplyStatus.NOT_FOUND
                return ApplyEffectResult(applied=False, status=status), None
            if state == "off":
                existing = StackManager.find_stack(actor, condition.id)
                if existing is None:
                    return ApplyEffectResult(applied=False, status=ApplyStatus.NOT_FOUND), None
                await store_call(f"Deleting effect '{existing.name}' on {actor.ref}", actor.delete_effect(existing.id))
                logger.info(f"EffectProcessor: Removed all stacks of '{condition.id}' from {actor.ref}.")
                return ApplyEffectResult(applied=False, status=ApplyStatus.REMOVED, effect=existing), None
            return await self._apply(actor, data, options, combat)

        if state in ("up", "down"):
            logger.warning(f"EffectProcessor: '{condition.id}' is not stackable; '{state}' ignored.")
            return ApplyEffectResult(applied=False, status=ApplyStatus.REJECTED,
                                     message=f"{condition.name} is not stackable."), None

        existing = self.find_toggle_target(actor, data)
        if state == "toggle":
            options.toggle = True
            return await self._apply(actor, data, options, combat)
        if state == "on":
            if existing is not None:
                return ApplyEffectResult(applied=False, status=ApplyStatus.ALREADY_ACTIVE, effect=existing), None
            return await self._apply(actor, data, options, combat)

        # off
        if existing is None:
            return ApplyEffectResult(applied=False, status=ApplyStatus.NOT_FOUND), None
        await store_call(f"Deleting effect '{existing.name}' on {actor.ref}", actor.delete_effect(existing.id))
        logger.info(f"EffectProcessor: Turned '{condition.id}' off for {actor.ref}.")
        return ApplyEffectResult(applied=False, status=ApplyStatus.REMOVED, effect=existing), None
