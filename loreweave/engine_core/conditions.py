"""
Condition Evaluator - decides whether a gated choice is visible.

Supports:
- flag:       story flags (missing = false)
- stat:       character stats (missing = 0)
- inventory:  summed held count of an item id
- expression: opaque string handed to an injected predicate
- lore:       lookups in a lore index by "entityType:id"

Evaluation is pure: no mutation, no randomness. Every variant fails
closed; problems are reported as diagnostics, never raised.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, assert_never
import logging

from ..bundle.dsl import (
    Condition,
    ExpressionCondition,
    FlagCondition,
    FlagOperator,
    InventoryCondition,
    InventoryOperator,
    LoreCondition,
    LoreOperator,
    StatCondition,
    StatOperator,
)
from ..bundle.lore import LoreLookup
from ..errors import DiagnosticCode, DiagnosticSink
from .state import GameState

logger = logging.getLogger(__name__)

ExpressionPredicate = Callable[[str, GameState], bool]


@dataclass(frozen=True)
class EvaluationContext:
    """Where a condition is being asked, e.g. for a module that scopes by scene or NPC."""
    scene_id: str | None = None
    location_id: str | None = None
    scope: dict[str, Any] = field(default_factory=dict)


class ConditionDelegate(Protocol):
    """Fallback for conditions the evaluator cannot decide itself."""

    def evaluate_condition(
        self,
        condition: Condition,
        state: GameState,
        context: EvaluationContext | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> bool: ...


class ConditionEvaluator:
    """
    Evaluates bundle conditions against a GameState.

    Collaborators are optional:
        expression_predicate  decides expression conditions
        lore_index            answers lore conditions
        delegate              usually the RuleModuleDispatcher; consulted
                              for expression/lore conditions when the
                              matching collaborator is missing
    """

    def __init__(
        self,
        expression_predicate: ExpressionPredicate | None = None,
        lore_index: LoreLookup | None = None,
        delegate: ConditionDelegate | None = None,
    ):
        self.expression_predicate = expression_predicate
        self.lore_index = lore_index
        self.delegate = delegate

    def evaluate(
        self,
        condition: Condition | None,
        state: GameState,
        context: EvaluationContext | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> bool:
        """Evaluate a condition. An absent condition is always true."""
        if condition is None:
            return True
        sink = diagnostics if diagnostics is not None else DiagnosticSink(logger)

        if isinstance(condition, FlagCondition):
            return check_flag(condition, state)
        if isinstance(condition, StatCondition):
            return check_stat(condition, state)
        if isinstance(condition, InventoryCondition):
            return self._eval_inventory(condition, state)
        if isinstance(condition, ExpressionCondition):
            return self._eval_expression(condition, state, context, sink)
        if isinstance(condition, LoreCondition):
            return self._eval_lore(condition, state, context, sink)
        assert_never(condition)

    def _eval_inventory(self, condition: InventoryCondition, state: GameState) -> bool:
        count = state.character.item_count(condition.key)
        op = condition.operator
        if op == InventoryOperator.HAS:
            return count > 0
        if op == InventoryOperator.NOT_HAS:
            return count == 0
        if op == InventoryOperator.COUNT_GTE:
            return count >= condition.value
        if op == InventoryOperator.COUNT_LTE:
            return count <= condition.value
        assert_never(op)

    def _eval_expression(
        self, condition: ExpressionCondition, state: GameState, context: EvaluationContext | None, sink: DiagnosticSink
    ) -> bool:
        if self.expression_predicate is None:
            if self.delegate is not None:
                return self.delegate.evaluate_condition(condition, state, context, sink)
            return False
        try:
            return bool(self.expression_predicate(condition.expr, state))
        except Exception as exc:
            sink.report(
                DiagnosticCode.EXPRESSION_EVALUATION_ERROR,
                f"Expression {condition.expr!r} failed: {exc}",
                expr=condition.expr,
            )
            return False

    def _eval_lore(self, condition: LoreCondition, state: GameState, context: EvaluationContext | None, sink: DiagnosticSink) -> bool:
        if self.lore_index is None:
            if self.delegate is not None:
                return self.delegate.evaluate_condition(condition, state, context, sink)
            sink.report(DiagnosticCode.LORE_UNAVAILABLE, f"No lore loaded for '{condition.key}'", key=condition.key)
            return False

        entity = self.lore_index.lookup(condition.key)
        op = condition.operator
        if op == LoreOperator.HAS:
            return entity is not None
        if op == LoreOperator.NOT_HAS:
            return len(self.lore_index) > 0 and entity is None
        if op == LoreOperator.EQUALS:
            return entity is not None and _matches(entity, condition.value)
        if op == LoreOperator.NOT_EQUALS:
            return entity is not None and not _matches(entity, condition.value)
        assert_never(op)


def _matches(entity: Any, expected: Any) -> bool:
    """Every field of the expected mapping must equal the entity's field."""
    if not isinstance(expected, dict):
        return False
    return all(key in entity and entity[key] == value for key, value in expected.items())


def check_flag(condition: FlagCondition, state: GameState) -> bool:
    """Flag comparison shared with rule modules that decide flag conditions."""
    op = condition.operator
    if op == FlagOperator.EXISTS:
        return condition.key in state.flags
    if op == FlagOperator.NOT_EXISTS:
        return condition.key not in state.flags
    current = state.flag(condition.key)
    if op == FlagOperator.EQUALS:
        return current == condition.value
    if op == FlagOperator.NOT_EQUALS:
        return current != condition.value
    assert_never(op)


def check_stat(condition: StatCondition, state: GameState) -> bool:
    current = state.character.stat(condition.key)
    target = condition.value
    op = condition.operator
    if op == StatOperator.GT:
        return current > target
    if op == StatOperator.GTE:
        return current >= target
    if op == StatOperator.LT:
        return current < target
    if op == StatOperator.LTE:
        return current <= target
    if op == StatOperator.EQ:
        return current == target
    if op == StatOperator.NEQ:
        return current != target
    assert_never(op)
