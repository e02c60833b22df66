# tabletop_engine/__init__.py
from .config import EngineSettings, HookErrorMode, load_settings, configure_logging
from .exceptions import (
    EngineError,
    ValidationError,
    FormulaError,
    ConfigurationError,
    CapacityError,
    HookError,
    CollaboratorError,
)
from .game.rules.hooks import HookBus, HookRegistry, HookEvent
from .game.rules.checks_pipeline import ChecksPipeline
from .game.rules.reroll import RerollOptions
from .game.rules.check_context import CheckContext, TargetContext
from .game.managers import StackManager, DurationManager, EffectProcessor
from .game.utils.mutation_queue import ActorMutationQueue

__all__ = [
    "EngineSettings",
    "HookErrorMode",
    "load_settings",
    "configure_logging",
    "EngineError",
    "ValidationError",
    "FormulaError",
    "ConfigurationError",
    "CapacityError",
    "HookError",
    "CollaboratorError",
    "HookBus",
    "HookRegistry",
    "HookEvent",
    "ChecksPipeline",
    "RerollOptions",
    "CheckContext",
    "TargetContext",
    "StackManager",
    "DurationManager",
    "EffectProcessor",
    "ActorMutationQueue",
]
