"""
Tests for the ConditionEvaluator.

Tests:
- Flag, stat and inventory comparisons
- Expression conditions with and without a predicate
- Lore lookups and the no-lore fallback
- Delegation to rule modules
"""

import pytest

from ..bundle.dsl import (
    ExpressionCondition,
    FlagCondition,
    FlagOperator,
    InventoryCondition,
    InventoryOperator,
    Item,
    LoreCondition,
    LoreOperator,
    StatCondition,
    StatOperator,
)
from ..bundle.lore import LoreIndex
from ..engine_core.conditions import ConditionEvaluator
from ..engine_core.rules import RuleModule, RuleModuleDispatcher, RuleResult
from ..engine_core.state import InventoryEntry
from ..errors import DiagnosticCode, DiagnosticSink


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


class TestBasicConditions:
    """Flag, stat and inventory conditions."""

    def test_absent_condition_is_true(self, evaluator, town_square_state):
        assert evaluator.evaluate(None, town_square_state)

    def test_missing_flag_reads_false(self, evaluator, town_square_state):
        assert not evaluator.evaluate(FlagCondition("door.open"), town_square_state)
        assert evaluator.evaluate(FlagCondition("door.open", FlagOperator.EQUALS, False), town_square_state)

    def test_flag_exists_distinguishes_false_from_missing(self, evaluator, town_square_state):
        town_square_state.flags["door.open"] = False
        assert evaluator.evaluate(FlagCondition("door.open", FlagOperator.EXISTS), town_square_state)
        assert not evaluator.evaluate(FlagCondition("door.open", FlagOperator.NOT_EXISTS), town_square_state)
        assert evaluator.evaluate(FlagCondition("door.open", FlagOperator.NOT_EQUALS, True), town_square_state)

    @pytest.mark.parametrize("operator,value,expected", [
        (StatOperator.GT, 9, True),
        (StatOperator.GT, 10, False),
        (StatOperator.GTE, 10, True),
        (StatOperator.LT, 10, False),
        (StatOperator.LTE, 10, True),
        (StatOperator.EQ, 10, True),
        (StatOperator.NEQ, 10, False),
    ])
    def test_stat_operators(self, evaluator, town_square_state, operator, value, expected):
        assert evaluator.evaluate(StatCondition("str", operator, value), town_square_state) is expected

    def test_missing_stat_reads_zero(self, evaluator, town_square_state):
        assert evaluator.evaluate(StatCondition("cha", StatOperator.EQ, 0), town_square_state)

    def test_inventory_counts_across_entries(self, evaluator, town_square_state):
        coin = Item(id="coin", name="Coin")
        town_square_state.character.inventory = [InventoryEntry(coin, 2), InventoryEntry(coin, 1)]

        assert evaluator.evaluate(InventoryCondition("coin"), town_square_state)
        assert evaluator.evaluate(InventoryCondition("coin", InventoryOperator.COUNT_GTE, 3), town_square_state)
        assert not evaluator.evaluate(InventoryCondition("coin", InventoryOperator.COUNT_LTE, 2), town_square_state)
        assert evaluator.evaluate(InventoryCondition("gem", InventoryOperator.NOT_HAS), town_square_state)

    def test_evaluation_does_not_mutate_state(self, evaluator, town_square_state):
        before = town_square_state.clone()
        evaluator.evaluate(FlagCondition("x"), town_square_state)
        evaluator.evaluate(InventoryCondition("coin"), town_square_state)
        assert town_square_state == before


class TestExpressionConditions:
    """Expression conditions go to an injected predicate."""

    def test_predicate_decides(self, town_square_state):
        seen = []

        def predicate(expr, state):
            seen.append(expr)
            return expr == "night"

        evaluator = ConditionEvaluator(expression_predicate=predicate)
        assert evaluator.evaluate(ExpressionCondition("night"), town_square_state)
        assert not evaluator.evaluate(ExpressionCondition("day"), town_square_state)
        assert seen == ["night", "day"]

    def test_no_predicate_is_false(self, evaluator, town_square_state):
        assert not evaluator.evaluate(ExpressionCondition("anything"), town_square_state)

    def test_failing_predicate_reports_and_is_false(self, town_square_state):
        def predicate(expr, state):
            raise RuntimeError("boom")

        sink = DiagnosticSink()
        evaluator = ConditionEvaluator(expression_predicate=predicate)

        assert not evaluator.evaluate(ExpressionCondition("x > 1"), town_square_state, diagnostics=sink)
        assert sink.codes() == [DiagnosticCode.EXPRESSION_EVALUATION_ERROR]


class TestLoreConditions:
    """Lore conditions query the lore index."""

    def test_has_and_not_has(self, lore_index, town_square_state):
        evaluator = ConditionEvaluator(lore_index=lore_index)
        assert evaluator.evaluate(LoreCondition("faction:watch"), town_square_state)
        assert not evaluator.evaluate(LoreCondition("faction:pirates"), town_square_state)
        assert evaluator.evaluate(LoreCondition("faction:pirates", LoreOperator.NOT_HAS), town_square_state)

    def test_not_has_needs_loaded_lore(self, town_square_state):
        evaluator = ConditionEvaluator(lore_index=LoreIndex())
        assert not evaluator.evaluate(LoreCondition("faction:pirates", LoreOperator.NOT_HAS), town_square_state)

    def test_equals_matches_subset_of_fields(self, lore_index, town_square_state):
        evaluator = ConditionEvaluator(lore_index=lore_index)
        lawful = LoreCondition("faction:watch", LoreOperator.EQUALS, {"alignment": "lawful"})
        chaotic = LoreCondition("faction:watch", LoreOperator.EQUALS, {"alignment": "chaotic"})

        assert evaluator.evaluate(lawful, town_square_state)
        assert not evaluator.evaluate(chaotic, town_square_state)
        assert evaluator.evaluate(
            LoreCondition("faction:watch", LoreOperator.NOT_EQUALS, {"alignment": "chaotic"}), town_square_state
        )

    def test_no_lore_reports_unavailable(self, evaluator, town_square_state):
        sink = DiagnosticSink()
        assert not evaluator.evaluate(LoreCondition("race:dwarf"), town_square_state, diagnostics=sink)
        assert sink.codes() == [DiagnosticCode.LORE_UNAVAILABLE]


class _NightModule(RuleModule):
    id = "rules.night"
    system = "Custom"

    def evaluate_condition(self, condition, state, context=None):
        return getattr(condition, "expr", None) == "is_night"

    def resolve(self, context):
        return RuleResult.empty()


class _BrokenModule(_NightModule):
    id = "rules.broken"

    def evaluate_condition(self, condition, state, context=None):
        raise RuntimeError("module exploded")


class TestDelegation:
    """Without a collaborator, expression and lore conditions go to the delegate."""

    def test_delegate_decides_expression(self, town_square_state):
        dispatcher = RuleModuleDispatcher([_NightModule()], system="Custom")
        evaluator = ConditionEvaluator(delegate=dispatcher)

        assert evaluator.evaluate(ExpressionCondition("is_night"), town_square_state)
        assert not evaluator.evaluate(ExpressionCondition("is_day"), town_square_state)

    def test_delegate_without_system_module_is_false(self, town_square_state):
        dispatcher = RuleModuleDispatcher([_NightModule()], system="SRD5e")
        evaluator = ConditionEvaluator(delegate=dispatcher)
        assert not evaluator.evaluate(ExpressionCondition("is_night"), town_square_state)

    def test_failing_delegate_reports_module_error(self, town_square_state):
        dispatcher = RuleModuleDispatcher([_BrokenModule()], system="Custom")
        evaluator = ConditionEvaluator(delegate=dispatcher)
        sink = DiagnosticSink()

        assert not evaluator.evaluate(LoreCondition("race:elf"), town_square_state, diagnostics=sink)
        assert sink.codes() == [DiagnosticCode.MODULE_ERROR]
