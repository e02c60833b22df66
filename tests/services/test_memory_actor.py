import pytest

from tabletop_engine.exceptions import CollaboratorError, ValidationError
from tabletop_engine.game.contracts import ActorAccessor, CombatClockAccessor
from tabletop_engine.game.models.effect_models import EffectInstance
from tabletop_engine.services.combat_clock import CombatClock
from tabletop_engine.services.memory_actor import InMemoryActor


def test_memory_actor_satisfies_the_contract(hero):
    assert isinstance(hero, ActorAccessor)
    assert isinstance(CombatClock([hero]), CombatClockAccessor)


def test_attribute_and_stat_lookups(hero):
    assert hero.get_attribute_tick("dex") == 3
    assert hero.get_attribute_tick("sta") == 0
    assert hero.get_attribute_tick("luck") is None
    assert hero.get_stat_mod("toHit") == 1
    assert hero.get_stat_mod("crit") == 0
    assert hero.get_stat_value("avoid") == 9
    assert hero.get_stat_value("crit") is None


@pytest.mark.asyncio
async def test_effect_crud(hero):
    created = await hero.create_embedded_effect(EffectInstance(name="Haste", icon="h.svg"))
    assert [e.id for e in hero.effects] == [created.id]

    updated = await hero.update_effect(created.id, {"name": "Greater Haste"})
    assert updated.name == "Greater Haste"
    assert hero.effects[0].name == "Greater Haste"

    await hero.delete_effect(created.id)
    assert hero.effects == []


@pytest.mark.asyncio
async def test_missing_effects_raise_collaborator_errors(hero):
    with pytest.raises(CollaboratorError):
        await hero.update_effect("nope", {"name": "x"})
    with pytest.raises(CollaboratorError):
        await hero.delete_effect("nope")


@pytest.mark.asyncio
async def test_duplicate_ids_are_rejected(hero):
    effect = EffectInstance(name="Haste", icon="h.svg")
    await hero.create_embedded_effect(effect)
    with pytest.raises(CollaboratorError):
        await hero.create_embedded_effect(effect)


@pytest.mark.asyncio
async def test_effects_list_is_a_snapshot(hero):
    await hero.create_embedded_effect(EffectInstance(name="Haste", icon="h.svg"))
    snapshot = hero.effects
    snapshot.clear()
    assert len(hero.effects) == 1


@pytest.mark.asyncio
async def test_update_patches_actor_data(hero):
    await hero.update({"hp": 12})
    assert hero.data["hp"] == 12


@pytest.mark.asyncio
async def test_effect_documents_use_flag_scope(hero):
    await hero.create_embedded_effect(EffectInstance(name="Haste", icon="h.svg"))
    documents = hero.effect_documents("myscope")
    assert list(documents[0]["flags"].keys()) == ["myscope"]


# --- CombatClock ---

@pytest.mark.asyncio
async def test_combat_clock_turn_order(hero, goblin):
    combat = CombatClock([hero, goblin], combat_id="combat-1")
    assert combat.current is None
    await combat.start()
    assert (combat.round, combat.turn, combat.current) == (1, 0, hero)

    assert await combat.next_turn() is goblin
    assert await combat.next_turn() is hero
    assert (combat.round, combat.turn) == (2, 0)

    await combat.end()
    assert combat.started is False
    assert combat.current is None


@pytest.mark.asyncio
async def test_combat_clock_guards():
    empty = CombatClock([])
    with pytest.raises(ValidationError):
        await empty.start()
    idle = CombatClock([InMemoryActor(ref="Actor.a", name="A")])
    with pytest.raises(ValidationError):
        await idle.next_turn()
