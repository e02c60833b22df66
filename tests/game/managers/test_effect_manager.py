import asyncio

import pytest
from unittest.mock import AsyncMock

from tabletop_engine.exceptions import ValidationError
from tabletop_engine.game.managers.effect_manager import EffectProcessor
from tabletop_engine.game.models.effect_models import (
    ApplyEffectOptions, ApplyStatus, EffectData, EffectDuration, EffectFlags, NonStackable, Stackable
)
from tabletop_engine.game.rules.hooks import HookEvent
from tabletop_engine.game.utils.mutation_queue import ActorMutationQueue
from tabletop_engine.services.combat_clock import CombatClock


@pytest.fixture
def processor(settings):
    return EffectProcessor(settings)


def _stackable(max_stacks=None, stack_id="rage"):
    return EffectData(name="Rage", icon="r.svg",
                      flags=EffectFlags(stackable=True, stack_id=stack_id, max_stacks=max_stacks))


# --- apply_effect ---

@pytest.mark.asyncio
async def test_apply_normalizes_defaults(processor, settings, hero):
    result = await processor.apply_effect(
        hero, EffectData(img="icons/custom.svg"), ApplyEffectOptions(source_ref="Actor.witch")
    )

    assert result.applied is True
    assert result.status == ApplyStatus.CREATED
    effect = hero.effects[0]
    assert effect.name == settings.default_effect_name
    assert effect.icon == "icons/custom.svg"
    assert effect.origin == "Actor.witch"
    assert isinstance(effect.stacking, NonStackable)


@pytest.mark.asyncio
async def test_explicit_origin_wins_over_source(processor, settings, hero):
    await processor.apply_effect(
        hero, EffectData(name="Mark"), ApplyEffectOptions(origin="Item.wand", source_ref="Actor.witch")
    )
    assert hero.effects[0].origin == "Item.wand"
    assert hero.effects[0].icon == settings.default_effect_icon


@pytest.mark.asyncio
async def test_wire_shaped_dict_is_accepted(processor, hero):
    document = {
        "name": "Poison",
        "icon": "p.svg",
        "flags": {"tabletop": {"stackable": True, "stackId": "poison", "maxStacks": 2}},
    }
    result = await processor.apply_effect(hero, document)
    assert result.status == ApplyStatus.CREATED
    assert isinstance(hero.effects[0].stacking, Stackable)
    assert hero.effects[0].stacking.max_stacks == 2


@pytest.mark.asyncio
async def test_pre_process_veto_prevents_everything(processor, hero):
    processor.hooks.on(HookEvent.PRE_PROCESS_EFFECT, lambda payload: False)
    result = await processor.apply_effect(hero, EffectData(name="Haste"))
    assert result.applied is False
    assert result.status == ApplyStatus.PREVENTED
    assert hero.effects == []


@pytest.mark.asyncio
async def test_pre_process_hook_can_rewrite_the_effect(processor, hero):
    def rename(payload):
        payload.effect_data.name = "Greater Haste"

    processor.hooks.on(HookEvent.PRE_PROCESS_EFFECT, rename)
    await processor.apply_effect(hero, EffectData(name="Haste"))
    assert hero.effects[0].name == "Greater Haste"


@pytest.mark.asyncio
async def test_caller_data_is_never_mutated(processor, hero):
    data = EffectData(name="Haste")

    def rename(payload):
        payload.effect_data.name = "Changed"

    processor.hooks.on(HookEvent.PRE_PROCESS_EFFECT, rename)
    await processor.apply_effect(hero, data, ApplyEffectOptions(origin="Actor.witch"))
    assert data.name == "Haste"
    assert data.origin is None


@pytest.mark.asyncio
async def test_pre_create_veto(processor, hero):
    def veto(payload):
        payload.prevented = True

    processor.hooks.on(HookEvent.PRE_CREATE_EFFECT, veto)
    result = await processor.apply_effect(hero, EffectData(name="Haste"))
    assert result.status == ApplyStatus.PREVENTED
    assert hero.effects == []


@pytest.mark.asyncio
async def test_post_create_receives_the_stored_effect(processor, hero):
    listener = AsyncMock(return_value=None)
    processor.hooks.on(HookEvent.POST_CREATE_EFFECT, listener)
    result = await processor.apply_effect(hero, EffectData(name="Haste"))

    listener.assert_awaited_once()
    payload = listener.await_args.args[0]
    assert payload.effect.id == result.effect.id
    assert payload.actor is hero


@pytest.mark.asyncio
async def test_toggle_removes_an_existing_effect(processor, hero):
    options = ApplyEffectOptions(toggle=True)
    first = await processor.apply_effect(hero, EffectData(name="Shield"), options)
    second = await processor.apply_effect(hero, EffectData(name="Shield"), options)

    assert first.status == ApplyStatus.CREATED
    assert second.status == ApplyStatus.TOGGLED_OFF
    assert second.effect.id == first.effect.id
    assert hero.effects == []


@pytest.mark.asyncio
async def test_toggle_matches_status_before_name(processor, hero):
    await processor.apply_effect(hero, EffectData(name="Dazzled", statuses=["dazed"]))
    await processor.apply_effect(hero, EffectData(name="Dazed"))
    result = await processor.apply_effect(
        hero, EffectData(name="Dazed", statuses=["dazed"]), ApplyEffectOptions(toggle=True)
    )
    assert result.status == ApplyStatus.TOGGLED_OFF
    assert [e.name for e in hero.effects] == ["Dazed"]


@pytest.mark.asyncio
async def test_stackable_effects_never_toggle(processor, hero):
    options = ApplyEffectOptions(toggle=True)
    await processor.apply_effect(hero, _stackable(), options)
    result = await processor.apply_effect(hero, _stackable(), options)

    assert result.status == ApplyStatus.STACKED
    assert hero.get_effect_stack_count("rage") == 2


@pytest.mark.asyncio
async def test_stackable_without_stack_id_is_applied_once(processor, hero):
    result = await processor.apply_effect(hero, _stackable(stack_id=None))
    assert result.status == ApplyStatus.CREATED
    assert isinstance(hero.effects[0].stacking, NonStackable)


@pytest.mark.asyncio
async def test_capacity_is_reported_not_raised(processor, hero):
    await processor.apply_effect(hero, _stackable(max_stacks=2))
    await processor.apply_effect(hero, _stackable(max_stacks=2))
    result = await processor.apply_effect(hero, _stackable(max_stacks=2))

    assert result.applied is False
    assert result.status == ApplyStatus.CAPACITY_REACHED
    assert result.message == "Cannot add more stacks of Rage (max: 2)"
    assert hero.get_effect_stack_count("rage") == 2


@pytest.mark.asyncio
async def test_concurrent_stacking_keeps_one_instance(processor, hero):
    results = await asyncio.gather(*[processor.apply_effect(hero, _stackable(max_stacks=5)) for _ in range(3)])

    assert sorted(r.status.value for r in results) == ["created", "stacked", "stacked"]
    assert len(hero.effects) == 1
    assert hero.get_effect_stack_count("rage") == 3


@pytest.mark.asyncio
async def test_combat_duration_is_tracked(processor, hero):
    combat = CombatClock([hero])
    await combat.start()
    await processor.apply_effect(hero, EffectData(name="Haste", duration=EffectDuration(turns=2)), combat=combat)

    tracking = hero.effects[0].tracking
    assert tracking.remaining_turns == 2
    assert tracking.linked_combat_id == combat.id
    assert (tracking.start_round, tracking.start_turn) == (1, 0)


# --- set_effect_state ---

@pytest.mark.asyncio
async def test_on_and_off(processor, hero):
    assert (await processor.set_effect_state(hero, "stunned", "on")).status == ApplyStatus.CREATED
    assert (await processor.set_effect_state(hero, "stunned", "on")).status == ApplyStatus.ALREADY_ACTIVE
    assert len(hero.effects) == 1
    assert (await processor.set_effect_state(hero, "stunned", "off")).status == ApplyStatus.REMOVED
    assert (await processor.set_effect_state(hero, "stunned", "off")).status == ApplyStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_toggle_condition(processor, hero):
    assert (await processor.set_effect_state(hero, "charmed")).status == ApplyStatus.CREATED
    assert hero.effects[0].statuses == ["charmed"]
    assert (await processor.set_effect_state(hero, "charmed")).status == ApplyStatus.TOGGLED_OFF
    assert hero.effects == []


@pytest.mark.asyncio
async def test_stack_up_and_down(processor, hero):
    await processor.set_effect_state(hero, "bleeding", "up")
    await processor.set_effect_state(hero, "bleeding", "+")
    assert hero.get_effect_stack_count("bleeding") == 2

    assert (await processor.set_effect_state(hero, "bleeding", "-")).status == ApplyStatus.STACK_REMOVED
    assert hero.get_effect_stack_count("bleeding") == 1
    assert (await processor.set_effect_state(hero, "bleeding", "down")).status == ApplyStatus.STACK_REMOVED
    assert hero.effects == []
    assert (await processor.set_effect_state(hero, "bleeding", "down")).status == ApplyStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_stackable_condition_on_adds_and_off_clears(processor, hero):
    await processor.set_effect_state(hero, "infected", "on")
    await processor.set_effect_state(hero, "infected", "toggle")
    assert hero.get_effect_stack_count("infected") == 2

    result = await processor.set_effect_state(hero, "infected", "off")
    assert result.status == ApplyStatus.REMOVED
    assert hero.effects == []


@pytest.mark.asyncio
async def test_stack_states_rejected_for_plain_conditions(processor, hero):
    result = await processor.set_effect_state(hero, "stunned", "up")
    assert result.status == ApplyStatus.REJECTED
    assert hero.effects == []


@pytest.mark.asyncio
async def test_unknown_condition(processor, hero):
    result = await processor.set_effect_state(hero, "petrified", "on")
    assert result.status == ApplyStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_unknown_state(processor, hero):
    with pytest.raises(ValidationError):
        await processor.set_effect_state(hero, "stunned", "sideways")


@pytest.mark.asyncio
async def test_duration_shorthand_and_origin(processor, hero):
    await processor.set_effect_state(hero, "stunned", "on", duration="2r", origin="Actor.goblin")
    effect = hero.effects[0]
    assert effect.duration.rounds == 2
    assert effect.duration.turns == 1
    assert effect.origin == "Actor.goblin"
    assert effect.source_definition_id == "stunned"


@pytest.mark.asyncio
async def test_combat_end_duration_shorthand(processor, hero):
    await processor.set_effect_state(hero, "dazed", "on", duration="ce")
    assert hero.effects[0].removes_on_combat_end is True


@pytest.mark.asyncio
async def test_post_create_hooks_run_after_the_actor_lock_is_released(settings, hero):
    queue = ActorMutationQueue()
    processor = EffectProcessor(settings, queue=queue)
    lock_states = []
    processor.hooks.on(HookEvent.POST_CREATE_EFFECT, lambda payload: lock_states.append(queue.is_held(hero.ref)))

    await processor.apply_effect(hero, EffectData(name="Haste"))
    await processor.set_effect_state(hero, "stunned", "on")
    await processor.set_effect_state(hero, "charmed", "toggle")

    assert lock_states == [False, False, False]
