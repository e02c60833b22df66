# tabletop_engine/services/memory_actor.py
import logging
from typing import Optional, Dict, Any, List

from tabletop_engine.exceptions import CollaboratorError
from tabletop_engine.game.models.effect_models import EffectInstance

logger = logging.getLogger(__name__)


class InMemoryActor:
    """
    Dict-backed actor that satisfies ActorAccessor. Used by tests and by hosts that
    keep actors in memory and persist them elsewhere.

    attributes maps an attribute key ('pow', 'dex', ...) to its tick count.
    stats maps a stat key ('toHit', 'avoid', ...) to {'mod': int, 'value': int}.
    """

    def __init__(self,
                 ref: str,
                 name: str,
                 attributes: Optional[Dict[str, int]] = None,
                 stats: Optional[Dict[str, Dict[str, int]]] = None,
                 effects: Optional[List[EffectInstance]] = None,
                 data: Optional[Dict[str, Any]] = None,
                 ):
        self._ref = ref
        self._name = name
        self.attributes: Dict[str, int] = dict(attributes or {})
        self.stats: Dict[str, Dict[str, int]] = {k: dict(v) for k, v in (stats or {}).items()}
        self._effects: List[EffectInstance] = list(effects or [])
        self.data: Dict[str, Any] = dict(data or {})

    def __repr__(self) -> str:
        return f"InMemoryActor(ref={self._ref!r}, name={self._name!r}, effects={len(self._effects)})"

    @property
    def ref(self) -> str:
        return self._ref

    @property
    def name(self) -> str:
        return self._name

    @property
    def effects(self) -> List[EffectInstance]:
        return list(self._effects)

    def get_attribute_tick(self, key: str) -> Optional[int]:
        return self.attributes.get(key)

    def get_stat_mod(self, key: str) -> int:
        return int(self.stats.get(key, {}).get("mod", 0) or 0)

    def get_stat_value(self, key: str) -> Optional[int]:
        return self.stats.get(key, {}).get("value")

    def get_effect_stack_count(self, stack_id: str) -> int:
        for effect in self._effects:
            if effect.stack_id == stack_id:
                return effect.current_stacks
        return 0

    def effect_documents(self, flag_scope: str = "tabletop") -> List[Dict[str, Any]]:
        return [effect.to_document(flag_scope) for effect in self._effects]

    async def update(self, patch: Dict[str, Any]) -> None:
        self.data.update(patch)

    async def create_embedded_effect(self, effect: EffectInstance) -> EffectInstance:
        if any(e.id == effect.id for e in self._effects):
            raise CollaboratorError(f"Effect id {effect.id} already exists on {self._ref}")
        stored = effect.model_copy(deep=True)
        self._effects.append(stored)
        logger.debug(f"InMemoryActor: Created effect '{stored.name}' ({stored.id}) on {self._ref}.")
        return stored

    async def update_effect(self, effect_id: str, changes: Dict[str, Any]) -> EffectInstance:
        for index, effect in enumerate(self._effects):
            if effect.id == effect_id:
                updated = effect.model_copy(update=changes, deep=True)
                self._effects[index] = updated
                return updated
        raise CollaboratorError(f"No effect {effect_id} on {self._ref}")

    async def delete_effect(self, effect_id: str) -> None:
        for index, effect in enumerate(self._effects):
            if effect.id == effect_id:
                del self._effects[index]
                logger.debug(f"InMemoryActor: Deleted effect '{effect.name}' ({effect_id}) from {self._ref}.")
                return
        raise CollaboratorError(f"No effect {effect_id} on {self._ref}")
