# tabletop_engine/game/managers/__init__.py

"""
Managers own the effect lifecycle on actors: applying, stacking and expiring.
They share one ActorMutationQueue so writes to the same actor never interleave.
"""

from .stack_manager import StackManager
from .duration_manager import DurationManager
from .effect_manager import EffectProcessor

__all__ = ["StackManager", "DurationManager", "EffectProcessor"]
