"""
d20 rules - a small SRD 5e flavoured rule system.

Stats hold ability scores ("str", "dex", ...); modifiers are
floor((score - 10) / 2).

Hooks:
    skillCheck    {stat, dc, proficient?, advantage?, disadvantage?}
    savingThrow   {stat, dc, proficient?, advantage?, disadvantage?}
    attackRoll    {stat?, bonus?, ac, damage?, advantage?, disadvantage?}
    initiative    {stat? = "dex", var? = "initiative"}
    damageRoll    {notation, target? = "hp"}

Checks and attacks accept "onSuccess" / "onFailure" effect lists.
"""

from __future__ import annotations
from typing import Any

from ..bundle.dsl import Effect, ModifyStat, SetVar, parse_effects
from ..engine_core.rng import RNG
from ..engine_core.rules import Outcome, RuleContext, RuleModule, RuleResult
from ..engine_core.state import GameState

DEFAULT_PROFICIENCY_BONUS = 2


def ability_modifier(score: int | float) -> int:
    return int((score - 10) // 2)


def roll_d20(rng: RNG, advantage: bool = False, disadvantage: bool = False) -> tuple[int, list[int]]:
    """Roll a d20, taking the better/worse of two when (dis)advantaged. Both at once cancel out."""
    if advantage == disadvantage:
        roll = rng.int(1, 20)
        return roll, [roll]
    rolls = [rng.int(1, 20), rng.int(1, 20)]
    return (max(rolls) if advantage else min(rolls)), rolls


class D20Rules(RuleModule):
    id = "rules.d20"
    system = "SRD5e"

    @property
    def proficiency_bonus(self) -> int:
        return int(self.config.get("proficiencyBonus", DEFAULT_PROFICIENCY_BONUS))

    def resolve(self, context: RuleContext) -> RuleResult:
        hook = context.hook
        if hook is None:
            return RuleResult.empty()
        handler = self._get_handler(hook.type)
        if handler is None:
            return RuleResult.empty()
        if context.rng is None:
            raise ValueError(f"{hook.type} needs an RNG")
        return handler(context.state, hook.payload, context.rng)

    def _get_handler(self, hook_type: str):
        handlers = {
            "skillCheck": self._handle_skill_check,
            "savingThrow": self._handle_saving_throw,
            "attackRoll": self._handle_attack_roll,
            "initiative": self._handle_initiative,
            "damageRoll": self._handle_damage_roll,
        }
        return handlers.get(hook_type)

    def _handle_skill_check(self, state: GameState, payload: dict[str, Any], rng: RNG) -> RuleResult:
        return self._check(state, payload, rng, "You succeed.", "You fail.")

    def _handle_saving_throw(self, state: GameState, payload: dict[str, Any], rng: RNG) -> RuleResult:
        return self._check(state, payload, rng, "You resist.", "You fail to resist.")

    def _check(
        self, state: GameState, payload: dict[str, Any], rng: RNG, success_text: str, failure_text: str
    ) -> RuleResult:
        roll, rolls = roll_d20(rng, bool(payload.get("advantage")), bool(payload.get("disadvantage")))
        stat = payload.get("stat")
        modifier = ability_modifier(state.character.stat(stat)) if stat else 0
        if payload.get("proficient"):
            modifier += self.proficiency_bonus
        dc = payload.get("dc", 10)
        total = roll + modifier
        success = total >= dc
        return RuleResult(
            narrative=payload.get("successText" if success else "failureText")
            or (success_text if success else failure_text),
            effects=_branch_effects(payload, success),
            outcome=Outcome.SUCCESS if success else Outcome.FAILURE,
            data={"rolls": rolls, "roll": roll, "modifier": modifier, "total": total, "dc": dc},
        )

    def _handle_attack_roll(self, state: GameState, payload: dict[str, Any], rng: RNG) -> RuleResult:
        roll, rolls = roll_d20(rng, bool(payload.get("advantage")), bool(payload.get("disadvantage")))
        stat = payload.get("stat")
        bonus = payload.get("bonus", 0)
        if stat:
            bonus += ability_modifier(state.character.stat(stat))
        ac = payload.get("ac", 10)
        total = roll + bonus
        critical = roll == 20
        hit = critical or (roll != 1 and total >= ac)

        data: dict[str, Any] = {"rolls": rolls, "roll": roll, "bonus": bonus, "total": total, "ac": ac, "critical": critical}
        if hit and payload.get("damage"):
            damage = rng.roll(payload["damage"])
            if critical:
                damage += rng.roll(payload["damage"])
            data["damage"] = max(0, damage)

        if critical:
            narrative = "A critical hit!"
        else:
            narrative = "You hit." if hit else "You miss."
        return RuleResult(
            narrative=narrative,
            effects=_branch_effects(payload, hit),
            outcome=Outcome.SUCCESS if hit else Outcome.FAILURE,
            data=data,
        )

    def _handle_initiative(self, state: GameState, payload: dict[str, Any], rng: RNG) -> RuleResult:
        stat = payload.get("stat", "dex")
        roll = rng.int(1, 20)
        total = roll + ability_modifier(state.character.stat(stat))
        return RuleResult(
            effects=[SetVar(key=payload.get("var", "initiative"), value=total)],
            outcome=Outcome.NEUTRAL,
            data={"roll": roll, "total": total},
        )

    def _handle_damage_roll(self, state: GameState, payload: dict[str, Any], rng: RNG) -> RuleResult:
        amount = max(0, rng.roll(payload["notation"]))
        target = payload.get("target", "hp")
        return RuleResult(
            narrative=f"You take {amount} damage.",
            effects=[ModifyStat(key=target, delta=-amount, min=0)],
            outcome=Outcome.NEUTRAL,
            data={"notation": payload["notation"], "amount": amount},
        )


def _branch_effects(payload: dict[str, Any], success: bool) -> list[Effect]:
    return list(parse_effects(payload, "onSuccess" if success else "onFailure", "/payload"))
