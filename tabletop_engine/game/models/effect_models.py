# tabletop_engine/game/models/effect_models.py
import uuid
from enum import Enum
from typing import Optional, Dict, Any, List, Union, Literal, Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from tabletop_engine.exceptions import ValidationError


class StackMode(str, Enum):
    ADD = "ADD"
    MULTIPLY = "MULTIPLY"
    MAX = "MAX"
    MIN = "MIN"


class SpecialDuration(str, Enum):
    REMOVE_ON_COMBAT_END = "removeOnCombatEnd"


class EffectDuration(BaseModel):
    """Display-only duration. The authoritative countdown lives in DurationTracking."""
    turns: Optional[int] = Field(None, ge=0)
    rounds: Optional[int] = Field(None, ge=0)


class EffectChange(BaseModel):
    """A single stat change carried by an effect. value may be an int or a formula in 'stacks'."""
    key: str
    value: Union[int, str]


class EffectFlags(BaseModel):
    """
    The namespaced flag bag persisted on an effect document, in its wire (camelCase) shape.
    """
    model_config = ConfigDict(populate_by_name=True)

    stackable: bool = False
    stack_id: Optional[str] = Field(None, alias="stackId")
    max_stacks: Optional[int] = Field(None, ge=1, alias="maxStacks")
    current_stacks: int = Field(1, ge=0, alias="currentStacks")
    stack_mode: StackMode = Field(StackMode.ADD, alias="stackMode")
    show_stack_count: bool = Field(True, alias="showStackCount")
    remaining_turns: Optional[int] = Field(None, alias="remainingTurns")
    remaining_rounds: Optional[int] = Field(None, alias="remainingRounds")
    linked_combat_id: Optional[str] = Field(None, alias="linkedCombat")
    start_round: Optional[int] = Field(None, alias="startRound")
    start_turn: Optional[int] = Field(None, alias="startTurn")
    has_decremented_once: bool = Field(False, alias="hasDecrementedOnce")
    last_decrement_round: Optional[int] = Field(None, alias="lastDecrementRound")
    last_decrement_turn: Optional[int] = Field(None, alias="lastDecrementTurn")
    special_duration: Optional[SpecialDuration] = Field(None, alias="specialDuration")
    source_definition_id: Optional[str] = Field(None, alias="sourceDefinitionId")


class EffectData(BaseModel):
    """
    An effect application request before normalization. Everything is optional;
    EffectProcessor fills in defaults.
    """
    name: Optional[str] = None
    icon: Optional[str] = None
    img: Optional[str] = None
    description: Optional[str] = None
    origin: Optional[str] = None
    statuses: List[str] = Field(default_factory=list)
    duration: EffectDuration = Field(default_factory=EffectDuration)
    changes: List[EffectChange] = Field(default_factory=list)
    flags: EffectFlags = Field(default_factory=EffectFlags)

    @classmethod
    def from_document(cls, document: Dict[str, Any], flag_scope: str = "tabletop") -> "EffectData":
        """Parses a wire-shaped effect dict, reading custom flags from flags[flag_scope]."""
        payload = dict(document)
        payload.pop("_id", None)
        scoped_flags = (payload.pop("flags", None) or {}).get(flag_scope) or {}
        try:
            return cls(**payload, flags=EffectFlags(**scoped_flags))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid effect data: {e}") from e


class NonStackable(BaseModel):
    kind: Literal["non_stackable"] = "non_stackable"


class Stackable(BaseModel):
    kind: Literal["stackable"] = "stackable"
    stack_id: str = Field(..., min_length=1)
    max_stacks: Optional[int] = Field(None, ge=1)
    stack_mode: StackMode = StackMode.ADD
    current_stacks: int = Field(1, ge=1)
    show_stack_count: bool = True

    @model_validator(mode="after")
    def _stacks_within_max(self) -> "Stackable":
        if self.max_stacks is not None and self.current_stacks > self.max_stacks:
            raise ValueError(f"current_stacks {self.current_stacks} exceeds max_stacks {self.max_stacks}")
        return self

    @property
    def at_capacity(self) -> bool:
        return self.max_stacks is not None and self.current_stacks >= self.max_stacks


Stacking = Annotated[Union[NonStackable, Stackable], Field(discriminator="kind")]


class DurationTracking(BaseModel):
    remaining_turns: Optional[int] = None
    remaining_rounds: Optional[int] = None
    linked_combat_id: Optional[str] = None
    start_round: Optional[int] = None
    start_turn: Optional[int] = None
    has_decremented_once: bool = False
    last_decrement_round: Optional[int] = None
    last_decrement_turn: Optional[int] = None

    @property
    def is_tracked(self) -> bool:
        return self.remaining_turns is not None or self.remaining_rounds is not None


class EffectInstance(BaseModel):
    """
    An effect attached to an actor. Stackable and non-stackable effects are distinct
    variants of ``stacking`` so that only NonStackable instances can ever be toggled.
    """
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:16])
    name: str
    icon: str
    description: Optional[str] = None
    origin: Optional[str] = None
    statuses: List[str] = Field(default_factory=list)
    duration: EffectDuration = Field(default_factory=EffectDuration)
    changes: List[EffectChange] = Field(default_factory=list)
    stacking: Stacking = Field(default_factory=NonStackable)
    tracking: DurationTracking = Field(default_factory=DurationTracking)
    special_duration: Optional[SpecialDuration] = None
    source_definition_id: Optional[str] = None

    @property
    def is_stackable(self) -> bool:
        return isinstance(self.stacking, Stackable)

    @property
    def stack_id(self) -> Optional[str]:
        return self.stacking.stack_id if isinstance(self.stacking, Stackable) else None

    @property
    def current_stacks(self) -> int:
        return self.stacking.current_stacks if isinstance(self.stacking, Stackable) else 1

    @property
    def removes_on_combat_end(self) -> bool:
        return self.special_duration == SpecialDuration.REMOVE_ON_COMBAT_END

    @classmethod
    def from_data(cls, data: EffectData, effect_id: Optional[str] = None) -> "EffectInstance":
        """Builds an instance from normalized EffectData. Raises ValidationError on bad stacking data."""
        flags = data.flags
        try:
            if flags.stackable:
                stacking: Union[NonStackable, Stackable] = Stackable(
                    stack_id=flags.stack_id or "",
                    max_stacks=flags.max_stacks,
                    stack_mode=flags.stack_mode,
                    current_stacks=max(1, flags.current_stacks),
                    show_stack_count=flags.show_stack_count,
                )
            else:
                stacking = NonStackable()
            fields: Dict[str, Any] = dict(
                name=data.name,
                icon=data.icon or data.img,
                description=data.description,
                origin=data.origin,
                statuses=list(data.statuses),
                duration=data.duration.model_copy(),
                changes=list(data.changes),
                stacking=stacking,
                tracking=DurationTracking(
                    remaining_turns=flags.remaining_turns,
                    remaining_rounds=flags.remaining_rounds,
                    linked_combat_id=flags.linked_combat_id,
                    start_round=flags.start_round,
                    start_turn=flags.start_turn,
                    has_decremented_once=flags.has_decremented_once,
                    last_decrement_round=flags.last_decrement_round,
                    last_decrement_turn=flags.last_decrement_turn,
                ),
                special_duration=flags.special_duration,
                source_definition_id=flags.source_definition_id,
            )
            if effect_id:
                fields["id"] = effect_id
            return cls(**fields)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid effect '{data.name}': {e}") from e

    def to_flags(self) -> EffectFlags:
        stacking = self.stacking
        tracking = self.tracking
        flags = EffectFlags(
            remaining_turns=tracking.remaining_turns,
            remaining_rounds=tracking.remaining_rounds,
            linked_combat_id=tracking.linked_combat_id,
            start_round=tracking.start_round,
            start_turn=tracking.start_turn,
            has_decremented_once=tracking.has_decremented_once,
            last_decrement_round=tracking.last_decrement_round,
            last_decrement_turn=tracking.last_decrement_turn,
            special_duration=self.special_duration,
            source_definition_id=self.source_definition_id,
        )
        if isinstance(stacking, Stackable):
            flags.stackable = True
            flags.stack_id = stacking.stack_id
            flags.max_stacks = stacking.max_stacks
            flags.current_stacks = stacking.current_stacks
            flags.stack_mode = stacking.stack_mode
            flags.show_stack_count = stacking.show_stack_count
        return flags

    def to_document(self, flag_scope: str = "tabletop") -> Dict[str, Any]:
        """Serializes to the persisted wire shape, custom fields under flags[flag_scope]."""
        return {
            "_id": self.id,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
            "origin": self.origin,
            "statuses": list(self.statuses),
            "duration": self.duration.model_dump(),
            "changes": [c.model_dump() for c in self.changes],
            "flags": {flag_scope: self.to_flags().model_dump(by_alias=True, mode="json")},
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any], flag_scope: str = "tabletop") -> "EffectInstance":
        data = EffectData.from_document(document, flag_scope)
        if not data.name or not (data.icon or data.img):
            raise ValidationError("Persisted effect documents require a name and an icon.")
        return cls.from_data(data, effect_id=document.get("_id"))


class ApplyEffectOptions(BaseModel):
    toggle: bool = False
    origin: Optional[str] = None
    source_ref: Optional[str] = None  # caster; used as origin when origin is not given
    item_ref: Optional[str] = None


class ApplyStatus(str, Enum):
    CREATED = "created"
    STACKED = "stacked"
    TOGGLED_OFF = "toggled_off"
    REMOVED = "removed"
    STACK_REMOVED = "stack_removed"
    ALREADY_ACTIVE = "already_active"
    NOT_FOUND = "not_found"
    PREVENTED = "prevented"
    CAPACITY_REACHED = "capacity_reached"
    REJECTED = "rejected"


class ApplyEffectResult(BaseModel):
    """Outcome of an effect operation. Capacity and prevention are reported here, not raised."""
    applied: bool
    status: ApplyStatus
    effect: Optional[EffectInstance] = None
    message: Optional[str] = None
