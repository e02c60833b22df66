# tabletop_engine/game/contracts.py
"""
Collaborator contracts. The engine only talks to actors, combat clocks and dice
rollers through these protocols; services/ holds in-memory implementations.
"""
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from tabletop_engine.game.models.effect_models import EffectInstance
from tabletop_engine.game.rules.dice_roller import DiceRoller

__all__ = ["ActorAccessor", "CombatClockAccessor", "DiceRoller"]


@runtime_checkable
class ActorAccessor(Protocol):
    """
    An actor document as seen by the engine. Writes go through the async methods;
    the backing store is responsible for persistence.
    """

    @property
    def ref(self) -> str:
        ...

    @property
    def name(self) -> str:
        ...

    @property
    def effects(self) -> List[EffectInstance]:
        ...

    def get_attribute_tick(self, key: str) -> Optional[int]:
        ...

    def get_stat_mod(self, key: str) -> int:
        ...

    def get_stat_value(self, key: str) -> Optional[int]:
        ...

    def get_effect_stack_count(self, stack_id: str) -> int:
        ...

    async def update(self, patch: Dict[str, Any]) -> None:
        ...

    async def create_embedded_effect(self, effect: EffectInstance) -> EffectInstance:
        ...

    async def update_effect(self, effect_id: str, changes: Dict[str, Any]) -> EffectInstance:
        ...

    async def delete_effect(self, effect_id: str) -> None:
        ...


@runtime_checkable
class CombatClockAccessor(Protocol):
    """The active combat, if any. round and turn are the current position."""

    @property
    def id(self) -> str:
        ...

    @property
    def round(self) -> int:
        ...

    @property
    def turn(self) -> int:
        ...

    @property
    def started(self) -> bool:
        ...


def is_combat_active(combat: Optional[CombatClockAccessor]) -> bool:
    """True when a combat clock is given and has started."""
    return combat is not None and bool(combat.started)
