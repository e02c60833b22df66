# tabletop_engine/game/rules/dice_roller.py
import logging
import random
import re
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from tabletop_engine.exceptions import CollaboratorError, EngineError, ValidationError
from tabletop_engine.game.models.dice_models import DiceOutcome, DiceTerm, DieResult

logger = logging.getLogger(__name__)

# (num_dice)d(die_sides)(kh|kl)(keep_count), num_dice optional
_DICE_TERM_RE = re.compile(r'(\d*)d(\d+)(?:(kh|kl)(\d+))?')
_INT_TERM_RE = re.compile(r'\d+')

DEFAULT_MAX_DICE = 1000
DEFAULT_MAX_FACES = 1000


@runtime_checkable
class DiceRoller(Protocol):
    """Anything that can turn a dice formula into an evaluated DiceOutcome."""

    async def evaluate(self, formula: str) -> DiceOutcome:
        ...


def parse_formula(
    formula: str,
    max_dice: int = DEFAULT_MAX_DICE,
    max_faces: int = DEFAULT_MAX_FACES,
) -> Tuple[List[DiceTerm], int]:
    """
    Parses a dice formula into unrolled dice terms and a flat constant.

    Supported: "2d6", "d20", "3d6kh2 + 4", "3d6kl2 - 1", "2d6 + -3".

    Args:
        formula: The dice formula.
        max_dice: Largest accepted dice count per term.
        max_faces: Largest accepted face count per die.

    Returns:
        A tuple of (dice terms with empty results, summed integer constant).

    Raises:
        ValidationError: If the formula is outside the whitelisted grammar.
    """
    if not isinstance(formula, str) or not formula.strip():
        raise ValidationError("Dice formula must be a non-empty string.")

    text = formula.lower().replace(" ", "")
    terms: List[DiceTerm] = []
    constant = 0
    pos = 0
    sign = 1
    expect_term = True

    while pos < len(text):
        char = text[pos]
        if expect_term:
            if char in "+-":
                # unary signs, e.g. "2d6+-3"
                sign = -sign if char == "-" else sign
                pos += 1
                continue
            dice_match = _DICE_TERM_RE.match(text, pos)
            if dice_match:
                num_str, faces_str, keep_mode, keep_str = dice_match.groups()
                if sign < 0:
                    raise ValidationError(f"Negative dice terms are not supported: '{formula}'.")
                number = int(num_str) if num_str else 1
                faces = int(faces_str)
                if number <= 0:
                    raise ValidationError("Number of dice must be positive.")
                if number > max_dice:
                    raise ValidationError(f"Cannot roll more than {max_dice} dice at once.")
                if faces <= 0:
                    raise ValidationError("Die sides must be positive.")
                if faces > max_faces:
                    raise ValidationError(f"Die sides cannot exceed {max_faces}.")
                keep_count = int(keep_str) if keep_str else None
                if keep_count is not None and not 1 <= keep_count <= number:
                    raise ValidationError(f"Keep count must be between 1 and {number}: '{formula}'.")
                terms.append(DiceTerm(number=number, faces=faces, keep_mode=keep_mode, keep_count=keep_count))
                pos = dice_match.end()
            else:
                int_match = _INT_TERM_RE.match(text, pos)
                if not int_match:
                    raise ValidationError(f"Invalid dice string format: '{formula}'. Examples: '2d6', '3d6kh2+1'.")
                constant += sign * int(int_match.group())
                pos = int_match.end()
            sign = 1
            expect_term = False
        else:
            if char not in "+-":
                raise ValidationError(f"Invalid dice string format: '{formula}'. Expected '+' or '-' at position {pos}.")
            sign = -1 if char == "-" else 1
            pos += 1
            expect_term = True

    if expect_term:
        raise ValidationError(f"Invalid dice string format: '{formula}'. Formula ends with an operator.")
    return terms, constant


def apply_keep_rule(term: DiceTerm) -> DiceTerm:
    """Marks dice outside a kh/kl selection inactive. Ties drop the later die."""
    if not term.keep_mode or term.keep_count is None:
        return term
    indexed = list(enumerate(term.results))
    reverse = term.keep_mode == "kh"
    ordered = sorted(indexed, key=lambda pair: pair[1].result, reverse=reverse)
    kept = {index for index, _ in ordered[:term.keep_count]}
    for index, die in indexed:
        die.active = index in kept
    return term


def build_outcome(formula: str, terms: List[DiceTerm], constant: int) -> DiceOutcome:
    for term in terms:
        apply_keep_rule(term)
    return DiceOutcome(formula=formula, terms=terms, constant=constant).recompute_total()


class RandomDiceRoller:
    """
    Default DiceRoller backed by random.Random. Pass a seed for reproducible rolls.
    """

    def __init__(self, seed: Optional[int] = None, max_dice: int = DEFAULT_MAX_DICE, max_faces: int = DEFAULT_MAX_FACES):
        self._rng = random.Random(seed)
        self._max_dice = max_dice
        self._max_faces = max_faces

    async def evaluate(self, formula: str) -> DiceOutcome:
        terms, constant = parse_formula(formula, self._max_dice, self._max_faces)
        for term in terms:
            term.results = [DieResult(result=self._rng.randint(1, term.faces)) for _ in range(term.number)]
        outcome = build_outcome(formula, terms, constant)
        logger.debug(f"RandomDiceRoller: {formula} -> {outcome.faces()} = {outcome.total}")
        return outcome


def format_formula(base_roll: str, bonus: int) -> str:
    """Joins a base roll and a flat bonus: ('2d6', -1) -> '2d6 - 1'."""
    if bonus < 0:
        return f"{base_roll} - {abs(bonus)}"
    return f"{base_roll} + {bonus}"


async def evaluate_roll(roller: DiceRoller, formula: str) -> DiceOutcome:
    """Awaits a roller, wrapping anything that is not an engine error as CollaboratorError."""
    try:
        outcome = await roller.evaluate(formula)
    except EngineError:
        raise
    except Exception as e:
        logger.error(f"DiceRoller: Roller failed to evaluate '{formula}': {e}")
        raise CollaboratorError(f"Dice roller failed to evaluate '{formula}': {e}") from e
    if not isinstance(outcome, DiceOutcome):
        raise CollaboratorError(f"Dice roller returned {type(outcome).__name__} for '{formula}', expected DiceOutcome.")
    return outcome
