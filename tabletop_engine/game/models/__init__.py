# tabletop_engine/game/models/__init__.py
from .dice_models import DieResult, DiceTerm, DiceOutcome
from .check_models import (
    CheckType,
    DiceSystem,
    AdvantageState,
    Attribute,
    TargetResult,
    Modifier,
    Check,
    CheckResult,
    CheckRecord,
    PoolComponent,
    TargetedIndividual,
    ItemData,
    SkillData,
    RenderSection,
    create_check,
    create_check_result,
)
from .effect_models import (
    StackMode,
    SpecialDuration,
    EffectDuration,
    EffectChange,
    EffectFlags,
    EffectData,
    NonStackable,
    Stackable,
    DurationTracking,
    EffectInstance,
    ApplyEffectOptions,
    ApplyStatus,
    ApplyEffectResult,
)
from .status_conditions import StatusCondition, STATUS_CONDITIONS, get_status_condition, list_status_conditions

__all__ = [
    "DieResult", "DiceTerm", "DiceOutcome",
    "CheckType", "DiceSystem", "AdvantageState", "Attribute", "TargetResult",
    "Modifier", "Check", "CheckResult", "CheckRecord", "PoolComponent", "TargetedIndividual",
    "ItemData", "SkillData", "RenderSection", "create_check", "create_check_result",
    "StackMode", "SpecialDuration", "EffectDuration", "EffectChange", "EffectFlags", "EffectData",
    "NonStackable", "Stackable", "DurationTracking", "EffectInstance",
    "ApplyEffectOptions", "ApplyStatus", "ApplyEffectResult",
    "StatusCondition", "STATUS_CONDITIONS", "get_status_condition", "list_status_conditions",
]
