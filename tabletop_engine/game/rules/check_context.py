# tabletop_engine/game/rules/check_context.py
from dataclasses import dataclass, field
from typing import List, Optional

from tabletop_engine.game.contracts import ActorAccessor
from tabletop_engine.game.models.check_models import AdvantageState, ItemData, SkillData
from tabletop_engine.game.models.dice_models import DiceOutcome


@dataclass
class TargetContext:
    actor: ActorAccessor
    token_ref: Optional[str] = None


@dataclass
class CheckContext:
    """Everything the prepare and process phases may read for one check."""
    actor: ActorAccessor
    primary: Optional[str] = None
    secondary: Optional[str] = None
    attribute: Optional[str] = None  # initiative
    skill: Optional[SkillData] = None
    item: Optional[ItemData] = None
    advantage_state: Optional[AdvantageState] = None
    targets: List[TargetContext] = field(default_factory=list)
    roll: Optional[DiceOutcome] = None  # pre-rolled outcome for display checks
