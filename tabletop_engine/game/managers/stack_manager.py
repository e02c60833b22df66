# tabletop_engine/game/managers/stack_manager.py
import logging
from typing import Optional, Tuple, Union

from tabletop_engine.config import EngineSettings
from tabletop_engine.exceptions import CapacityError, ValidationError
from tabletop_engine.game.contracts import ActorAccessor, CombatClockAccessor, is_combat_active
from tabletop_engine.game.models.effect_models import (
    DurationTracking, EffectChange, EffectData, EffectDuration, EffectInstance, Stackable, StackMode
)
from tabletop_engine.game.rules.formula_parser import evaluate_formula
from tabletop_engine.game.utils.mutation_queue import ActorMutationQueue, store_call

logger = logging.getLogger(__name__)


def take_max(new: Optional[int], current: Optional[int]) -> Optional[int]:
    """max() that treats None as absent."""
    if new is None:
        return current
    if current is None:
        return new
    return max(new, current)


class StackManager:
    """
    Keeps one EffectInstance per (actor, stack_id) and counts repeated applications
    on it instead of creating duplicates.
    """

    def __init__(self, settings: Optional[EngineSettings] = None, queue: Optional[ActorMutationQueue] = None):
        self._settings = settings or EngineSettings()
        self._queue = queue or ActorMutationQueue()
        logger.info("Initializing StackManager...")

    @staticmethod
    def find_stack(actor: ActorAccessor, stack_id: str) -> Optional[EffectInstance]:
        for effect in actor.effects:
            if effect.stack_id == stack_id:
                return effect
        return None

    async def apply_stack(self, actor: ActorAccessor, data: EffectData,
                          combat: Optional[CombatClockAccessor] = None) -> Tuple[EffectInstance, bool]:
        """
        Adds one stack of a stackable effect.

        Returns:
            (instance, created) where created is True when a new instance was made.

        Raises:
            ValidationError: If the data is not stackable or has no stack id.
            CapacityError: If the existing instance is already at max_stacks. Nothing is changed.
        """
        flags = data.flags
        if not flags.stackable or not flags.stack_id:
            raise ValidationError(f"Effect '{data.name}' is not stackable or has no stackId.")
        stack_id = flags.stack_id

        async with self._queue.hold(actor.ref):
            existing = self.find_stack(actor, stack_id)
            if existing is None:
                first = data.model_copy(deep=True)
                first.flags.current_stacks = 1
                instance = EffectInstance.from_data(first)
                created = await store_call(
                    f"Creating effect '{instance.name}' on {actor.ref}", actor.create_embedded_effect(instance)
                )
                logger.info(f"StackManager: Created stack '{stack_id}' on {actor.ref} (1 stack).")
                return created, True

            stacking = existing.stacking
            if not isinstance(stacking, Stackable):
                raise ValidationError(f"Effect '{existing.name}' carries stackId '{stack_id}' but is not stackable.")
            max_stacks = stacking.max_stacks if stacking.max_stacks is not None else flags.max_stacks
            if max_stacks is not None and stacking.current_stacks >= max_stacks:
                logger.warning(
                    f"StackManager: Cannot add more stacks of '{existing.name}' on {actor.ref} (max: {max_stacks})."
                )
                raise CapacityError(stack_id, max_stacks, stacking.current_stacks, existing.name)

            changes = {
                "stacking": stacking.model_copy(update={
                    "current_stacks": stacking.current_stacks + 1,
                    "max_stacks": max_stacks,
                }),
                "tracking": self._refreshed_tracking(existing, data, combat),
                "duration": EffectDuration(
                    turns=take_max(data.duration.turns, existing.duration.turns),
                    rounds=take_max(data.duration.rounds, existing.duration.rounds),
                ),
                "origin": data.origin or existing.origin,
            }
            updated = await store_call(
                f"Updating effect '{existing.name}' on {actor.ref}", actor.update_effect(existing.id, changes)
            )
            logger.info(
                f"StackManager: Stack '{stack_id}' on {actor.ref} is now {updated.current_stacks}"
                f"{f'/{max_stacks}' if max_stacks else ''}."
            )
            return updated, False

    def _refreshed_tracking(self, existing: EffectInstance, data: EffectData,
                            combat: Optional[CombatClockAccessor]) -> DurationTracking:
        """A refresh never shortens remaining duration and re-anchors the turn guard at now."""
        current = existing.tracking
        in_combat = is_combat_active(combat)
        new_turns = data.flags.remaining_turns if data.flags.remaining_turns is not None else data.duration.turns
        new_rounds = data.flags.remaining_rounds if data.flags.remaining_rounds is not None else data.duration.rounds

        tracking = current.model_copy(update={
            "has_decremented_once": False,
            "last_decrement_round": None,
            "last_decrement_turn": None,
        })
        if in_combat or current.remaining_turns is not None:
            tracking.remaining_turns = take_max(new_turns, current.remaining_turns)
        if in_combat or current.remaining_rounds is not None:
            tracking.remaining_rounds = take_max(new_rounds, current.remaining_rounds)
        if in_combat:
            tracking.start_round = combat.round
            tracking.start_turn = combat.turn
            if tracking.is_tracked:
                tracking.linked_combat_id = combat.id
        return tracking

    async def remove_stack(self, actor: ActorAccessor, stack_id: str) -> bool:
        """Removes one stack; the instance is deleted when its last stack goes. Returns whether anything changed."""
        async with self._queue.hold(actor.ref):
            existing = self.find_stack(actor, stack_id)
            if existing is None:
                return False
            if existing.current_stacks <= 1:
                await store_call(f"Deleting effect '{existing.name}' on {actor.ref}", actor.delete_effect(existing.id))
                logger.info(f"StackManager: Removed last stack of '{stack_id}' from {actor.ref}.")
                return True
            stacking = existing.stacking
            await store_call(
                f"Updating effect '{existing.name}' on {actor.ref}",
                actor.update_effect(existing.id, {
                    "stacking": stacking.model_copy(update={"current_stacks": existing.current_stacks - 1}),
                }),
            )
            logger.info(f"StackManager: Stack '{stack_id}' on {actor.ref} reduced to {existing.current_stacks - 1}.")
            return True

    @staticmethod
    def stacked_value(change: Union[EffectChange, int, str], stacks: int, mode: StackMode = StackMode.ADD) -> int:
        """
        Resolves a change value for an effect with ``stacks`` stacks.

        ADD multiplies by the stack count, MULTIPLY raises to it, MAX and MIN apply
        the value once. A string value is a formula that may use ``stacks``.
        """
        value = change.value if isinstance(change, EffectChange) else change
        if isinstance(value, str):
            value = evaluate_formula(value, variable="stacks", value=stacks)
        mode = StackMode(mode)
        if mode == StackMode.ADD:
            return value * stacks
        if mode == StackMode.MULTIPLY:
            return value ** stacks
        return value
