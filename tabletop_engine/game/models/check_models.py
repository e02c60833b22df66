# tabletop_engine/game/models/check_models.py
import uuid
from enum import Enum
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator

from tabletop_engine.game.models.dice_models import DiceOutcome


class CheckType(str, Enum):
    ATTRIBUTE = "attribute"
    SKILL = "skill"
    ACCURACY = "accuracy"
    INITIATIVE = "initiative"
    DISPLAY = "display"


class DiceSystem(str, Enum):
    POOL = "pool"
    D6 = "d6"
    DISPLAY = "display"


class AdvantageState(str, Enum):
    NORMAL = "normal"
    ADVANTAGE = "advantage"
    DISADVANTAGE = "disadvantage"


class Attribute(str, Enum):
    POW = "pow"
    DEX = "dex"
    WILL = "will"
    STA = "sta"


class TargetResult(str, Enum):
    HIT = "hit"
    MISS = "miss"
    CRIT = "crit"
    FUMBLE = "fumble"


DICE_SYSTEM_BY_TYPE: Dict[CheckType, DiceSystem] = {
    CheckType.ATTRIBUTE: DiceSystem.POOL,
    CheckType.SKILL: DiceSystem.POOL,
    CheckType.ACCURACY: DiceSystem.D6,
    CheckType.INITIATIVE: DiceSystem.D6,
    CheckType.DISPLAY: DiceSystem.DISPLAY,
}


def dice_system_for(check_type: CheckType) -> DiceSystem:
    return DICE_SYSTEM_BY_TYPE[CheckType(check_type)]


class Modifier(BaseModel):
    """A labelled flat adjustment. Frozen once created so a Check's history cannot be rewritten."""
    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=1)
    value: StrictInt
    source: Optional[str] = None


class Check(BaseModel):
    """
    A check request under construction. Mutated by the prepare phase and its hooks,
    read-only afterwards.

    dice_system is fixed by type; assigning an inconsistent value fails validation.
    """
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: CheckType
    dice_system: DiceSystem
    primary: Optional[str] = None
    secondary: Optional[str] = None
    flat_bonus: Optional[int] = None
    base_roll: Optional[str] = None
    advantage_state: Optional[AdvantageState] = None
    modifiers: List[Modifier] = Field(default_factory=list)
    additional_data: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _dice_system_matches_type(self) -> "Check":
        expected = DICE_SYSTEM_BY_TYPE[self.type]
        if self.dice_system != expected:
            raise ValueError(
                f"dice_system '{self.dice_system.value}' is inconsistent with check type "
                f"'{self.type.value}' (expected '{expected.value}')"
            )
        return self

    def add_modifier(self, label: str, value: int, source: Optional[str] = None) -> Modifier:
        modifier = Modifier(label=label, value=value, source=source)
        self.modifiers.append(modifier)
        return modifier

    @property
    def modifier_total(self) -> int:
        return sum(m.value for m in self.modifiers)


class PoolComponent(BaseModel):
    """One side (primary or secondary) of a dice-pool breakdown."""
    attribute: Optional[str] = None
    dice: int = 0
    result: int = 0


class TargetedIndividual(BaseModel):
    actor_ref: str
    token_ref: Optional[str] = None
    name: Optional[str] = None
    result: TargetResult


class CheckResult(BaseModel):
    """
    The outcome of a processed Check. Rerolls produce a new instance; an existing
    result is never changed in place.
    """
    id: str
    type: CheckType
    dice_system: DiceSystem
    actor_ref: Optional[str] = None
    item_ref: Optional[str] = None
    roll: Optional[DiceOutcome] = None
    additional_rolls: List[DiceOutcome] = Field(default_factory=list)
    modifier_total: int = 0
    final_result: int = 0
    critical: bool = False
    fumble: bool = False
    auto_success: bool = False
    flat_bonus: Optional[int] = None
    advantage_state: Optional[AdvantageState] = None
    primary: Optional[PoolComponent] = None
    secondary: Optional[PoolComponent] = None
    modifiers: List[Modifier] = Field(default_factory=list)
    targeted_individuals: Optional[List[TargetedIndividual]] = None
    additional_data: Dict[str, Any] = Field(default_factory=dict)


class ItemData(BaseModel):
    """The slice of an item document the pipeline reads."""
    id: str
    uuid: Optional[str] = None
    name: str = ""
    type: str = ""
    to_hit: int = 0
    to_land: int = 0
    is_infinity: bool = False
    category: Optional[str] = None
    description: Optional[str] = None

    @property
    def ref(self) -> str:
        return self.uuid or self.id


class SkillData(BaseModel):
    id: str
    name: str
    ticks: int = 0

    @field_validator("ticks")
    @classmethod
    def _ticks_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("skill ticks cannot be negative")
        return v


class RenderSection(BaseModel):
    """An opaque display fragment. Hooks add these during rendering."""
    template: str
    data: Dict[str, Any] = Field(default_factory=dict)
    order: int = 0


class CheckRecord(BaseModel):
    """What the render phase emits: ordered sections plus routing flags."""
    actor_ref: Optional[str] = None
    item_ref: Optional[str] = None
    check_type: CheckType
    sections: List[RenderSection] = Field(default_factory=list)
    content_order: List[str] = Field(default_factory=list)
    rolls: List[DiceOutcome] = Field(default_factory=list)
    flags: Dict[str, Any] = Field(default_factory=dict)
    result: CheckResult


def create_check(check_type: CheckType, **overrides: Any) -> Check:
    """Builds a default Check for the given type with a fresh id and empty modifiers."""
    check_type = CheckType(check_type)
    data: Dict[str, Any] = {"type": check_type, "dice_system": dice_system_for(check_type)}
    data.update(overrides)
    return Check(**data)


def create_check_result(check: Check, actor_ref: Optional[str], item_ref: Optional[str] = None) -> CheckResult:
    return CheckResult(
        id=check.id,
        type=check.type,
        dice_system=check.dice_system,
        actor_ref=actor_ref,
        item_ref=item_ref,
        modifiers=list(check.modifiers),
        additional_data=dict(check.additional_data),
    )
