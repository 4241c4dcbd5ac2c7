"""
Core rules - the minimal "Custom" rule system.

Handles:
- Delegated flag and stat conditions
- skillCheck hooks: d20 + stat against a DC (default 10)

Hook payloads may carry "onSuccess" / "onFailure" effect lists, which
are proposed back to the engine depending on the outcome.
"""

from __future__ import annotations
from typing import Any

from ..bundle.dsl import Condition, FlagCondition, StatCondition, parse_effects
from ..engine_core.conditions import EvaluationContext, check_flag, check_stat
from ..engine_core.rules import Outcome, RuleContext, RuleModule, RuleResult
from ..engine_core.state import GameState

DEFAULT_DC = 10
NEUTRAL_ROLL = 10


class CoreRules(RuleModule):
    id = "rules.core"
    system = "Custom"

    def evaluate_condition(
        self, condition: Condition, state: GameState, context: EvaluationContext | None = None
    ) -> bool:
        if isinstance(condition, FlagCondition):
            return check_flag(condition, state)
        if isinstance(condition, StatCondition):
            return check_stat(condition, state)
        return False

    def resolve(self, context: RuleContext) -> RuleResult:
        hook = context.hook
        if hook is None or hook.type != "skillCheck":
            return RuleResult.empty()
        return self._skill_check(context, hook.payload)

    def _skill_check(self, context: RuleContext, payload: dict[str, Any]) -> RuleResult:
        roll = context.rng.int(1, 20) if context.rng is not None else NEUTRAL_ROLL
        stat = payload.get("stat")
        dc = payload.get("dc", DEFAULT_DC)
        modifier = context.state.character.stat(stat) if stat else 0
        total = roll + modifier
        success = total >= dc

        return RuleResult(
            narrative=payload.get("successText" if success else "failureText")
            or ("You succeed." if success else "You fail."),
            effects=list(_branch_effects(payload, success)),
            outcome=Outcome.SUCCESS if success else Outcome.FAILURE,
            data={"roll": roll, "stat": stat, "modifier": modifier, "total": total, "dc": dc},
        )


def _branch_effects(payload: dict[str, Any], success: bool):
    key = "onSuccess" if success else "onFailure"
    return parse_effects(payload, key, "/payload")
