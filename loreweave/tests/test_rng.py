"""
Tests for seeded and scripted randomness.
"""

import pytest

from ..engine_core.rng import RNG, DiceTerm, ScriptedRNG, SeededRNG, parse_notation
from ..errors import DiceNotationError


class TestNotation:
    """Dice expression parsing."""

    def test_parse_terms(self):
        assert parse_notation("2d6+1") == [DiceTerm(1, 2, 6), DiceTerm(1, 1, 0)]
        assert parse_notation("d20") == [DiceTerm(1, 1, 20)]
        assert parse_notation("1d8 - 1d4") == [DiceTerm(1, 1, 8), DiceTerm(-1, 1, 4)]

    @pytest.mark.parametrize("notation", ["", "  ", "2d", "d0", "0d6", "2d6 3", "abc", "1001d6"])
    def test_invalid_notation(self, notation):
        with pytest.raises(DiceNotationError):
            parse_notation(notation)

    def test_notation_error_is_value_error(self):
        with pytest.raises(ValueError):
            SeededRNG(1).roll("xyz")


class TestSeededRNG:
    """Same seed, same sequence."""

    def test_reproducible(self):
        a, b = SeededRNG(42), SeededRNG(42)
        assert [a.int(1, 20) for _ in range(10)] == [b.int(1, 20) for _ in range(10)]
        assert a.next() == b.next()
        assert a.roll("3d6+2") == b.roll("3d6+2")

    def test_bounds(self):
        rng = SeededRNG(7)
        assert all(1 <= rng.int(1, 4) <= 4 for _ in range(100))
        assert all(0.0 <= rng.next() < 1.0 for _ in range(100))
        assert all(3 <= rng.roll("2d4+1") <= 9 for _ in range(100))

    def test_empty_range(self):
        with pytest.raises(ValueError):
            SeededRNG(1).int(5, 1)

    def test_satisfies_protocol(self):
        assert isinstance(SeededRNG(), RNG)
        assert isinstance(ScriptedRNG([]), RNG)


class TestScriptedRNG:
    """Replays a fixed sequence."""

    def test_values_in_order_and_clamped(self):
        rng = ScriptedRNG([5, 30, -2])
        assert rng.int(1, 20) == 5
        assert rng.int(1, 20) == 20
        assert rng.int(1, 20) == 1
        assert rng.calls == [(1, 20)] * 3

    def test_roll_consumes_one_value_per_die(self):
        rng = ScriptedRNG([2, 5, 1])
        assert rng.roll("2d6-1") == 6
        assert rng.remaining == 1

    def test_next_maps_into_unit_interval(self):
        assert ScriptedRNG([250]).next() == 0.25

    def test_exhausted(self):
        rng = ScriptedRNG([1])
        rng.int(1, 6)
        with pytest.raises(IndexError):
            rng.int(1, 6)
