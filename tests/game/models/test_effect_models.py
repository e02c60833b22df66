import pytest
from pydantic import ValidationError as PydanticValidationError

from tabletop_engine.exceptions import ValidationError
from tabletop_engine.game.models.effect_models import (
    EffectData, EffectFlags, EffectInstance, NonStackable, SpecialDuration, Stackable, StackMode
)
from tabletop_engine.game.models.status_conditions import (
    STATUS_CONDITIONS, build_effect_data, get_status_condition, list_status_conditions
)


def test_flags_use_camel_case_on_the_wire():
    flags = EffectFlags(stackable=True, stack_id="poison", max_stacks=3, remaining_turns=2, linked_combat_id="c1")
    dumped = flags.model_dump(by_alias=True, mode="json")
    assert dumped["stackId"] == "poison"
    assert dumped["maxStacks"] == 3
    assert dumped["remainingTurns"] == 2
    assert dumped["linkedCombat"] == "c1"
    assert dumped["hasDecrementedOnce"] is False
    assert EffectFlags(**dumped) == flags


def test_instance_document_round_trip():
    data = EffectData(
        name="Poison",
        icon="icons/svg/poison.svg",
        statuses=["poisoned"],
        changes=[{"key": "pow", "value": "-1 * stacks"}],
        flags=EffectFlags(stackable=True, stack_id="poison", max_stacks=3, current_stacks=2,
                          stack_mode=StackMode.ADD, special_duration=SpecialDuration.REMOVE_ON_COMBAT_END),
    )
    instance = EffectInstance.from_data(data)
    document = instance.to_document("tabletop")

    assert document["_id"] == instance.id
    assert document["flags"]["tabletop"]["currentStacks"] == 2
    assert document["flags"]["tabletop"]["specialDuration"] == "removeOnCombatEnd"

    restored = EffectInstance.from_document(document, "tabletop")
    assert restored == instance
    assert restored.removes_on_combat_end is True


def test_from_document_ignores_other_flag_scopes():
    document = {"name": "Shield", "icon": "i.svg", "flags": {"core": {"stackable": True}}}
    instance = EffectInstance.from_document(document, "tabletop")
    assert isinstance(instance.stacking, NonStackable)


def test_from_document_requires_name_and_icon():
    with pytest.raises(ValidationError):
        EffectInstance.from_document({"name": "Nameless"})


def test_stackable_needs_a_stack_id():
    data = EffectData(name="Rage", icon="r.svg", flags=EffectFlags(stackable=True))
    with pytest.raises(ValidationError):
        EffectInstance.from_data(data)


def test_stacks_cannot_exceed_max():
    with pytest.raises(PydanticValidationError):
        Stackable(stack_id="bleed", max_stacks=2, current_stacks=3)
    assert Stackable(stack_id="bleed", max_stacks=2, current_stacks=2).at_capacity is True


def test_invalid_document_raises_engine_validation_error():
    with pytest.raises(ValidationError):
        EffectData.from_document({"name": "Bad", "duration": {"turns": -1}})


# --- Status conditions ---

def test_catalog_has_expected_entries():
    assert len(STATUS_CONDITIONS) == 17
    assert {c.id for c in list_status_conditions("health")} == {"infected"}
    assert get_status_condition("Bleeding").stackable is True
    assert get_status_condition("nonexistent") is None


def test_build_effect_data_for_stackable_condition():
    data = build_effect_data(get_status_condition("bleeding"))
    assert data.flags.stackable is True
    assert data.flags.stack_id == "bleeding"
    assert data.statuses == ["bleeding"]
    assert data.flags.source_definition_id == "bleeding"
    assert data.duration.turns == 3


def test_duration_override_replaces_only_its_unit():
    condition = get_status_condition("stunned")
    assert build_effect_data(condition, {"rounds": 2}).duration.turns == 1
    assert build_effect_data(condition, {"rounds": 2}).duration.rounds == 2
    assert build_effect_data(condition, {"turns": 4}).duration.turns == 4
    special = build_effect_data(condition, {"special_duration": "removeOnCombatEnd"})
    assert special.flags.special_duration == SpecialDuration.REMOVE_ON_COMBAT_END
