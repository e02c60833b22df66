import sys
import os

# Add the project root directory (one level up from 'tests') to sys.path
# so the tabletop_engine package imports without an editable install.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from typing import List

import pytest

from tabletop_engine.config import EngineSettings, HookErrorMode
from tabletop_engine.game.models.dice_models import DieResult
from tabletop_engine.game.rules.dice_roller import build_outcome, parse_formula
from tabletop_engine.game.rules.hooks import HookBus
from tabletop_engine.services.memory_actor import InMemoryActor


class ScriptedDiceRoller:
    """DiceRoller that hands out preset faces in order. Records every formula it was asked for."""

    def __init__(self, faces: List[int] = None):
        self.faces = list(faces or [])
        self.formulas: List[str] = []

    def queue(self, *faces: int) -> "ScriptedDiceRoller":
        self.faces.extend(faces)
        return self

    async def evaluate(self, formula: str):
        self.formulas.append(formula)
        terms, constant = parse_formula(formula)
        for term in terms:
            if len(self.faces) < term.number:
                raise AssertionError(f"ScriptedDiceRoller ran out of faces for '{formula}'")
            term.results = [DieResult(result=self.faces.pop(0)) for _ in range(term.number)]
        return build_outcome(formula, terms, constant)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def strict_settings() -> EngineSettings:
    return EngineSettings(hook_error_mode=HookErrorMode.STRICT)


@pytest.fixture
def roller() -> ScriptedDiceRoller:
    return ScriptedDiceRoller()


@pytest.fixture
def hooks(settings: EngineSettings) -> HookBus:
    return HookBus(settings.hook_error_mode)


@pytest.fixture
def hero() -> InMemoryActor:
    return InMemoryActor(
        ref="Actor.hero",
        name="Hero",
        attributes={"pow": 2, "dex": 3, "will": 1, "sta": 0},
        stats={"toHit": {"mod": 1, "value": 1}, "toLand": {"mod": 2, "value": 2}, "avoid": {"mod": 0, "value": 9}},
    )


@pytest.fixture
def goblin() -> InMemoryActor:
    return InMemoryActor(
        ref="Actor.goblin",
        name="Goblin",
        attributes={"pow": 1, "dex": 1},
        stats={"avoid": {"mod": 0, "value": 8}},
    )


@pytest.fixture
def ogre() -> InMemoryActor:
    return InMemoryActor(
        ref="Actor.ogre",
        name="Ogre",
        stats={"avoid": {"mod": 0, "value": 11}},
    )
