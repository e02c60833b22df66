# tabletop_engine/game/models/dice_models.py
from typing import List, Optional, Literal
from pydantic import BaseModel, Field


class DieResult(BaseModel):
    """A single die face. Dropped dice stay in the record with active=False."""
    result: int
    active: bool = True


class DiceTerm(BaseModel):
    number: int
    faces: int
    keep_mode: Optional[Literal["kh", "kl"]] = None
    keep_count: Optional[int] = None
    results: List[DieResult] = Field(default_factory=list)

    @property
    def expression(self) -> str:
        keep = f"{self.keep_mode}{self.keep_count}" if self.keep_mode else ""
        return f"{self.number}d{self.faces}{keep}"

    @property
    def total(self) -> int:
        return sum(r.result for r in self.results if r.active)


class DiceOutcome(BaseModel):
    """
    The evaluated form of a dice formula as returned by a DiceRoller.

    ``total`` always equals the sum of active dice plus ``constant``.
    """
    formula: str
    terms: List[DiceTerm] = Field(default_factory=list)
    constant: int = 0
    total: int = 0

    def faces(self) -> List[int]:
        return [r.result for term in self.terms for r in term.results]

    def active_faces(self) -> List[int]:
        return [r.result for term in self.terms for r in term.results if r.active]

    def dice_with_status(self) -> List[dict]:
        return [{"value": r.result, "active": r.active} for term in self.terms for r in term.results]

    @property
    def dice_total(self) -> int:
        return sum(term.total for term in self.terms)

    def recompute_total(self) -> "DiceOutcome":
        self.total = self.dice_total + self.constant
        return self
