import pytest

from tabletop_engine.game.utils.duration_parser import parse_duration


@pytest.mark.parametrize("text, expected", [
    ("3t", {"turns": 3}),
    ("2r", {"rounds": 2}),
    (" 10T ", {"turns": 10}),
    ("ce", {"special_duration": "removeOnCombatEnd"}),
    ("combat-end", {"special_duration": "removeOnCombatEnd"}),
    ("3", None),
    ("t3", None),
    ("3x", None),
    ("", None),
    (None, None),
])
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected
