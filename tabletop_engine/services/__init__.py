# tabletop_engine/services/__init__.py
from .memory_actor import InMemoryActor
from .combat_clock import CombatClock
