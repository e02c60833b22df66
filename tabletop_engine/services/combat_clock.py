# tabletop_engine/services/combat_clock.py
import logging
import uuid
from typing import List, Optional, Sequence

from tabletop_engine.exceptions import ValidationError
from tabletop_engine.game.contracts import ActorAccessor
from tabletop_engine.game.managers.duration_manager import DurationManager

logger = logging.getLogger(__name__)


class CombatClock:
    """
    A minimal turn order. Satisfies CombatClockAccessor and notifies the
    DurationManager as rounds and turns advance and when combat ends.
    """

    def __init__(self,
                 combatants: Sequence[ActorAccessor],
                 duration_manager: Optional[DurationManager] = None,
                 combat_id: Optional[str] = None,
                 ):
        self.id = combat_id or uuid.uuid4().hex[:16]
        self.combatants: List[ActorAccessor] = list(combatants)
        self.round = 0
        self.turn = 0
        self.started = False
        self._duration_manager = duration_manager

    @property
    def current(self) -> Optional[ActorAccessor]:
        if not self.started or not self.combatants:
            return None
        return self.combatants[self.turn]

    async def start(self) -> None:
        if not self.combatants:
            raise ValidationError("Cannot start a combat with no combatants.")
        self.started = True
        self.round = 1
        self.turn = 0
        logger.info(f"CombatClock: Combat {self.id} started with {len(self.combatants)} combatant(s).")

    async def next_turn(self) -> ActorAccessor:
        """Advances to the next combatant, rolling into a new round after the last one."""
        if not self.started:
            raise ValidationError(f"Combat {self.id} has not started.")
        self.turn += 1
        if self.turn >= len(self.combatants):
            self.turn = 0
            self.round += 1
            logger.debug(f"CombatClock: Combat {self.id} round {self.round}.")
            if self._duration_manager:
                await self._duration_manager.on_round(self.combatants, self)
        actor = self.combatants[self.turn]
        if self._duration_manager:
            await self._duration_manager.on_turn(actor, self)
        return actor

    async def end(self) -> None:
        if not self.started:
            return
        self.started = False
        logger.info(f"CombatClock: Combat {self.id} ended at round {self.round}.")
        if self._duration_manager:
            await self._duration_manager.on_combat_end(self.combatants, self.id)
