import unittest

from tabletop_engine.exceptions import CollaboratorError, ValidationError
from tabletop_engine.game.models.dice_models import DiceTerm, DieResult
from tabletop_engine.game.rules.dice_roller import (
    RandomDiceRoller, apply_keep_rule, evaluate_roll, format_formula, parse_formula
)


class TestParseFormula(unittest.TestCase):

    def test_simple_terms(self):
        terms, constant = parse_formula("2d6")
        self.assertEqual(len(terms), 1)
        self.assertEqual((terms[0].number, terms[0].faces), (2, 6))
        self.assertEqual(constant, 0)

        terms, constant = parse_formula("d20")
        self.assertEqual(terms[0].number, 1, "Missing dice count should default to 1")
        self.assertEqual(terms[0].faces, 20)

    def test_keep_modifiers(self):
        terms, _ = parse_formula("3d6kh2")
        self.assertEqual(terms[0].keep_mode, "kh")
        self.assertEqual(terms[0].keep_count, 2)
        terms, _ = parse_formula("3d6kl2")
        self.assertEqual(terms[0].keep_mode, "kl")

    def test_constants_and_signs(self):
        _, constant = parse_formula("2d6 + 4")
        self.assertEqual(constant, 4)
        _, constant = parse_formula("2d6 - 1")
        self.assertEqual(constant, -1)
        _, constant = parse_formula("2d6 + -3")
        self.assertEqual(constant, -3, "Unary minus after '+' should negate the constant")
        terms, constant = parse_formula("1d4 + 1d8 + 2 - 1")
        self.assertEqual([t.faces for t in terms], [4, 8])
        self.assertEqual(constant, 1)

    def test_invalid_formulas(self):
        for formula in ["", "   ", "2d", "abc", "2d6 +", "2d6 * 3", "0d6", "2d0", "3d6kh4", "-1d6"]:
            with self.subTest(formula=formula):
                with self.assertRaises(ValidationError):
                    parse_formula(formula)

    def test_limits(self):
        with self.assertRaises(ValidationError):
            parse_formula("1001d6")
        with self.assertRaises(ValidationError):
            parse_formula("1d1001")
        with self.assertRaises(ValidationError):
            parse_formula("5d6", max_dice=4)


class TestKeepRule(unittest.TestCase):

    def _term(self, mode, faces):
        return DiceTerm(number=len(faces), faces=6, keep_mode=mode, keep_count=2,
                        results=[DieResult(result=f) for f in faces])

    def test_keep_highest(self):
        term = apply_keep_rule(self._term("kh", [2, 6, 4]))
        self.assertEqual([r.active for r in term.results], [False, True, True])
        self.assertEqual(term.total, 10)

    def test_keep_lowest(self):
        term = apply_keep_rule(self._term("kl", [2, 6, 4]))
        self.assertEqual([r.active for r in term.results], [True, False, True])
        self.assertEqual(term.total, 6)

    def test_ties_drop_later_die(self):
        term = apply_keep_rule(self._term("kh", [5, 5, 5]))
        self.assertEqual([r.active for r in term.results], [True, True, False])


class TestFormatFormula(unittest.TestCase):

    def test_positive_and_zero_bonus(self):
        self.assertEqual(format_formula("2d6", 3), "2d6 + 3")
        self.assertEqual(format_formula("2d6", 0), "2d6 + 0")

    def test_negative_bonus(self):
        self.assertEqual(format_formula("3d6kh2", -2), "3d6kh2 - 2")


class TestRandomDiceRoller(unittest.IsolatedAsyncioTestCase):

    async def test_roll_ranges(self):
        roller = RandomDiceRoller(seed=42)
        for _ in range(20):
            outcome = await roller.evaluate("3d6 + 2")
            self.assertEqual(len(outcome.faces()), 3)
            for face in outcome.faces():
                self.assertTrue(1 <= face <= 6)
            self.assertEqual(outcome.total, sum(outcome.faces()) + 2)

    async def test_advantage_keeps_two(self):
        roller = RandomDiceRoller(seed=7)
        outcome = await roller.evaluate("3d6kh2")
        self.assertEqual(len(outcome.faces()), 3)
        self.assertEqual(len(outcome.active_faces()), 2)
        self.assertEqual(sorted(outcome.active_faces()), sorted(outcome.faces())[1:])
        self.assertEqual(outcome.total, sum(outcome.active_faces()))

    async def test_seed_is_reproducible(self):
        first = await RandomDiceRoller(seed=1).evaluate("10d6")
        second = await RandomDiceRoller(seed=1).evaluate("10d6")
        self.assertEqual(first.faces(), second.faces())


class _BrokenRoller:
    async def evaluate(self, formula):
        raise RuntimeError("dice tower fell over")


class _WrongTypeRoller:
    async def evaluate(self, formula):
        return 7


class TestEvaluateRoll(unittest.IsolatedAsyncioTestCase):

    async def test_foreign_errors_become_collaborator_errors(self):
        with self.assertRaises(CollaboratorError):
            await evaluate_roll(_BrokenRoller(), "2d6")

    async def test_wrong_return_type(self):
        with self.assertRaises(CollaboratorError):
            await evaluate_roll(_WrongTypeRoller(), "2d6")

    async def test_engine_errors_pass_through(self):
        with self.assertRaises(ValidationError):
            await evaluate_roll(RandomDiceRoller(), "2x6")


if __name__ == '__main__':
    unittest.main()
