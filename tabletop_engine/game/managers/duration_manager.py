# tabletop_engine/game/managers/duration_manager.py
import logging
from typing import Iterable, List, Optional

from tabletop_engine.config import EngineSettings
from tabletop_engine.game.contracts import ActorAccessor, CombatClockAccessor, is_combat_active
from tabletop_engine.game.models.effect_models import EffectData, EffectInstance
from tabletop_engine.game.utils.mutation_queue import ActorMutationQueue, store_call

logger = logging.getLogger(__name__)


def _belongs_to(effect: EffectInstance, combat_id: str) -> bool:
    linked = effect.tracking.linked_combat_id
    return linked is None or linked == combat_id


class DurationManager:
    """
    Counts down turn and round durations while a combat runs, and clears
    combat-scoped effects when it ends.

    The combat clock notifies this manager; nothing here polls.
    """

    def __init__(self, settings: Optional[EngineSettings] = None, queue: Optional[ActorMutationQueue] = None):
        self._settings = settings or EngineSettings()
        self._queue = queue or ActorMutationQueue()
        logger.info("Initializing DurationManager...")

    def setup_custom_duration(self, data: EffectData, combat: Optional[CombatClockAccessor]) -> EffectData:
        """
        Returns a copy of ``data`` with live countdown flags when a combat is running.

        Turns and rounds are handled separately: a counter that is already set is
        kept, a missing one is filled from ``data.duration``. The start anchor moves
        with the turns counter. Returns ``data`` itself when nothing needs writing.
        """
        if not is_combat_active(combat):
            return data
        flags = data.flags
        turns, rounds = data.duration.turns, data.duration.rounds
        write_turns = bool(turns) and flags.remaining_turns is None
        write_rounds = bool(rounds) and flags.remaining_rounds is None
        if not write_turns and not write_rounds:
            return data

        updated = data.model_copy(deep=True)
        if write_turns:
            updated.flags.remaining_turns = turns
            updated.flags.start_round = combat.round
            updated.flags.start_turn = combat.turn
            updated.flags.has_decremented_once = False
        if write_rounds:
            updated.flags.remaining_rounds = rounds
        updated.flags.linked_combat_id = combat.id
        logger.debug(
            f"DurationManager: Tracking '{data.name}' for {updated.flags.remaining_turns or 0} turn(s) / "
            f"{updated.flags.remaining_rounds or 0} round(s) from round {combat.round}, turn {combat.turn} "
            f"of combat {combat.id}."
        )
        return updated

    async def on_turn(self, actor: ActorAccessor, combat: CombatClockAccessor) -> List[str]:
        """
        Called when ``actor``'s turn starts. Decrements remaining turns on its
        effects, at most once per (round, turn) position. Returns deleted effect ids.
        """
        position = (combat.round, combat.turn)
        removed: List[str] = []
        async with self._queue.hold(actor.ref):
            for effect in list(actor.effects):
                tracking = effect.tracking
                if tracking.remaining_turns is None or not _belongs_to(effect, combat.id):
                    continue
                if not tracking.has_decremented_once and (tracking.start_round, tracking.start_turn) == position:
                    continue
                if (tracking.last_decrement_round, tracking.last_decrement_turn) == position:
                    continue

                remaining = tracking.remaining_turns - 1
                if remaining <= 0:
                    await self._expire(actor, effect, "turns")
                    removed.append(effect.id)
                    continue
                await store_call(
                    f"Updating effect '{effect.name}' on {actor.ref}",
                    actor.update_effect(effect.id, {"tracking": tracking.model_copy(update={
                        "remaining_turns": remaining,
                        "has_decremented_once": True,
                        "last_decrement_round": combat.round,
                        "last_decrement_turn": combat.turn,
                    })}),
                )
                logger.debug(f"DurationManager: '{effect.name}' on {actor.ref} has {remaining} turn(s) left.")
        return removed

    async def on_round(self, actors: Iterable[ActorAccessor], combat: CombatClockAccessor) -> List[str]:
        """Called when a new round starts. Decrements remaining rounds for every effect in this combat."""
        removed: List[str] = []
        for actor in actors:
            async with self._queue.hold(actor.ref):
                for effect in list(actor.effects):
                    tracking = effect.tracking
                    if tracking.remaining_rounds is None or not _belongs_to(effect, combat.id):
                        continue
                    remaining = tracking.remaining_rounds - 1
                    if remaining <= 0:
                        await self._expire(actor, effect, "rounds")
                        removed.append(effect.id)
                        continue
                    await store_call(
                        f"Updating effect '{effect.name}' on {actor.ref}",
                        actor.update_effect(effect.id, {
                            "tracking": tracking.model_copy(update={"remaining_rounds": remaining}),
                        }),
                    )
        return removed

    async def on_combat_end(self, actors: Iterable[ActorAccessor], combat_id: str) -> List[str]:
        """Deletes removeOnCombatEnd effects that are linked to this combat or to none."""
        removed: List[str] = []
        for actor in actors:
            async with self._queue.hold(actor.ref):
                for effect in list(actor.effects):
                    if effect.removes_on_combat_end and _belongs_to(effect, combat_id):
                        await self._expire(actor, effect, "combat end")
                        removed.append(effect.id)
        if removed:
            logger.info(f"DurationManager: Combat {combat_id} ended; removed {len(removed)} effect(s).")
        return removed

    async def _expire(self, actor: ActorAccessor, effect: EffectInstance, reason: str) -> None:
        await store_call(f"Deleting effect '{effect.name}' on {actor.ref}", actor.delete_effect(effect.id))
        logger.info(f"DurationManager: '{effect.name}' expired on {actor.ref} ({reason}).")
