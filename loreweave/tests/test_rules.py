"""
Tests for rule modules and the dispatcher.

Tests:
- Building a dispatcher from a bundle's declarations
- Targeted and broadcast hook resolution
- Core and d20 rule systems with scripted dice
"""

import pytest

from ..bundle.dsl import (
    FlagCondition,
    FlagOperator,
    ModifyStat,
    RuleHook,
    SetFlag,
    SetVar,
    StatCondition,
    StatOperator,
)
from ..bundle.models import StoryBundle
from ..engine_core.rng import ScriptedRNG
from ..engine_core.rules import (
    Outcome,
    RuleContext,
    RuleModule,
    RuleModuleDispatcher,
    RuleResult,
    merge_results,
)
from ..errors import BundleValidationError, DiagnosticCode, DiagnosticSink
from ..rulesets import BUILTIN_MODULES, CoreRules, D20Rules
from ..rulesets.d20 import ability_modifier, roll_d20
from .conftest import minimal_bundle_dict


class _EchoModule(RuleModule):
    id = "rules.echo"
    system = "Custom"

    def resolve(self, context):
        return RuleResult(
            narrative=f"echo {context.hook.type}",
            effects=[SetFlag("echoed")],
            outcome=Outcome.NEUTRAL,
            data={"seen": context.hook.type},
        )


class _FailingModule(RuleModule):
    id = "rules.fail"
    system = "Custom"

    def resolve(self, context):
        raise RuntimeError("dice fell off the table")


@pytest.fixture
def tavern_context(rookhaven, town_square_state):
    return RuleContext(state=town_square_state, scene=rookhaven.get_scene("tavern"))


class TestDispatcherRegistry:
    """Module registration and bundle wiring."""

    def test_for_bundle_instantiates_declared_modules(self, mini_bundle, catalog):
        dispatcher = RuleModuleDispatcher.for_bundle(mini_bundle, catalog)

        assert len(dispatcher) == 1
        assert "rules.core" in dispatcher
        assert dispatcher.system == "Custom"
        assert isinstance(dispatcher.get("rules.core"), CoreRules)

    def test_for_bundle_rejects_unknown_module(self, catalog):
        data = minimal_bundle_dict()
        data["ruleModules"].append({"id": "rules.gurps", "system": "GURPS"})
        bundle = StoryBundle.from_dict(data)

        with pytest.raises(BundleValidationError) as exc_info:
            RuleModuleDispatcher.for_bundle(bundle, catalog)
        assert exc_info.value.issues[0].path == "/ruleModules/1/id"

    def test_config_reaches_module(self, catalog):
        data = minimal_bundle_dict()
        data["ruleModules"] = [{"id": "rules.d20", "system": "SRD5e", "config": {"proficiencyBonus": 4}}]
        dispatcher = RuleModuleDispatcher.for_bundle(StoryBundle.from_dict(data), catalog)

        assert dispatcher.get("rules.d20").proficiency_bonus == 4

    def test_duplicate_registration_fails(self):
        dispatcher = RuleModuleDispatcher([_EchoModule()])
        with pytest.raises(ValueError):
            dispatcher.register(_EchoModule())

    def test_modules_keep_registration_order(self):
        dispatcher = RuleModuleDispatcher([_EchoModule(), CoreRules()])
        assert [m.id for m in dispatcher.modules] == ["rules.echo", "rules.core"]
        assert [m.id for m in dispatcher.modules_for_system("Custom")] == ["rules.echo", "rules.core"]


class TestHookResolution:
    """Targeted and broadcast hooks."""

    def test_targeted_hook_goes_to_one_module(self, tavern_context):
        dispatcher = RuleModuleDispatcher([_EchoModule(), _FailingModule()])
        result = dispatcher.resolve(RuleHook("ping", module_id="rules.echo"), tavern_context)

        assert result.narrative == "echo ping"
        assert result.effects == [SetFlag("echoed")]

    def test_unregistered_module_reports_and_returns_empty(self, tavern_context):
        dispatcher = RuleModuleDispatcher([_EchoModule()])
        sink = DiagnosticSink()
        result = dispatcher.resolve(RuleHook("ping", module_id="rules.missing"), tavern_context, sink)

        assert result.is_empty
        assert sink.codes() == [DiagnosticCode.MODULE_NOT_REGISTERED]

    def test_broadcast_merges_in_registration_order(self, tavern_context):
        class _Second(_EchoModule):
            id = "rules.second"

            def resolve(self, context):
                return RuleResult(narrative="second", effects=[SetVar("n", 2)], outcome=Outcome.SUCCESS)

        dispatcher = RuleModuleDispatcher([_EchoModule(), _Second()])
        result = dispatcher.resolve(RuleHook("ping"), tavern_context)

        assert result.narrative == "echo ping\nsecond"
        assert result.effects == [SetFlag("echoed"), SetVar("n", 2)]
        assert result.outcome == Outcome.SUCCESS
        assert result.data == {"rules.echo": {"seen": "ping"}}

    def test_broadcast_survives_failing_module(self, tavern_context):
        dispatcher = RuleModuleDispatcher([_FailingModule(), _EchoModule()])
        sink = DiagnosticSink()
        result = dispatcher.resolve(RuleHook("ping"), tavern_context, sink)

        assert result.narrative == "echo ping"
        assert sink.codes() == [DiagnosticCode.MODULE_ERROR]

    def test_broadcast_with_no_modules_is_empty(self, tavern_context):
        assert RuleModuleDispatcher().resolve(RuleHook("ping"), tavern_context).is_empty

    def test_merge_first_decisive_outcome_wins(self):
        merged = merge_results([
            ("a", RuleResult(outcome=Outcome.NEUTRAL)),
            ("b", RuleResult(outcome=Outcome.FAILURE)),
            ("c", RuleResult(outcome=Outcome.SUCCESS)),
        ])
        assert merged.outcome == Outcome.FAILURE


class TestCoreRules:
    """skillCheck: d20 + stat against a DC."""

    def test_skill_check_success(self, tavern_context):
        hook = RuleHook("skillCheck", {"stat": "str", "dc": 12, "onSuccess": [{"type": "setFlag", "key": "won"}]})
        result = CoreRules().resolve(RuleContext(
            state=tavern_context.state, scene=tavern_context.scene, hook=hook, rng=ScriptedRNG([10]),
        ))

        assert result.outcome == Outcome.SUCCESS
        assert result.narrative == "You succeed."
        assert result.effects == [SetFlag("won")]
        assert result.data == {"roll": 10, "stat": "str", "modifier": 10, "total": 20, "dc": 12}

    def test_skill_check_failure_uses_failure_text(self, tavern_context):
        hook = RuleHook("skillCheck", {
            "stat": "dex", "dc": 25, "failureText": "You slip.",
            "onFailure": [{"type": "modifyStat", "key": "hp", "delta": -1, "min": 0}],
        })
        result = CoreRules().resolve(RuleContext(
            state=tavern_context.state, scene=tavern_context.scene, hook=hook, rng=ScriptedRNG([3]),
        ))

        assert result.outcome == Outcome.FAILURE
        assert result.narrative == "You slip."
        assert result.effects == [ModifyStat("hp", -1, min=0)]

    def test_unknown_hook_is_empty(self, tavern_context):
        result = CoreRules().resolve(RuleContext(
            state=tavern_context.state, scene=tavern_context.scene, hook=RuleHook("dance"),
        ))
        assert result.is_empty

    def test_delegated_flag_condition(self, town_square_state):
        town_square_state.flags["met.barkeep"] = True
        town_square_state.flags["door.locked"] = False
        rules = CoreRules()

        assert rules.evaluate_condition(FlagCondition("met.barkeep"), town_square_state)
        assert rules.evaluate_condition(FlagCondition("x", FlagOperator.NOT_EXISTS), town_square_state)
        assert not rules.evaluate_condition(FlagCondition("x", FlagOperator.EXISTS), town_square_state)
        assert rules.evaluate_condition(FlagCondition("door.locked", FlagOperator.EXISTS), town_square_state)
        assert rules.evaluate_condition(FlagCondition("door.locked", FlagOperator.NOT_EQUALS), town_square_state)
        assert not rules.evaluate_condition(FlagCondition("met.barkeep", FlagOperator.NOT_EQUALS), town_square_state)

    @pytest.mark.parametrize("operator,value,expected", [
        (StatOperator.GT, 9, True),
        (StatOperator.GTE, 11, False),
        (StatOperator.LT, 10, False),
        (StatOperator.LTE, 10, True),
        (StatOperator.EQ, 10, True),
        (StatOperator.NEQ, 5, True),
        (StatOperator.NEQ, 10, False),
    ])
    def test_delegated_stat_condition(self, town_square_state, operator, value, expected):
        assert CoreRules().evaluate_condition(StatCondition("str", operator, value), town_square_state) is expected


class TestD20Rules:
    """The SRD5e flavoured module."""

    def test_ability_modifier(self):
        assert ability_modifier(10) == 0
        assert ability_modifier(15) == 2
        assert ability_modifier(8) == -1

    def test_advantage_takes_higher(self):
        assert roll_d20(ScriptedRNG([4, 17]), advantage=True) == (17, [4, 17])
        assert roll_d20(ScriptedRNG([4, 17]), disadvantage=True) == (4, [4, 17])
        assert roll_d20(ScriptedRNG([9]), advantage=True, disadvantage=True) == (9, [9])

    def test_proficient_skill_check(self, tavern_context):
        tavern_context.state.character.stats["str"] = 14
        hook = RuleHook("skillCheck", {"stat": "str", "dc": 15, "proficient": True})
        result = D20Rules().resolve(RuleContext(
            state=tavern_context.state, scene=tavern_context.scene, hook=hook, rng=ScriptedRNG([11]),
        ))

        assert result.outcome == Outcome.SUCCESS
        assert result.data["total"] == 15

    def test_natural_one_always_misses(self, tavern_context):
        hook = RuleHook("attackRoll", {"bonus": 30, "ac": 5})
        result = D20Rules().resolve(RuleContext(
            state=tavern_context.state, scene=tavern_context.scene, hook=hook, rng=ScriptedRNG([1]),
        ))
        assert result.outcome == Outcome.FAILURE

    def test_critical_hit_doubles_damage_dice(self, tavern_context):
        hook = RuleHook("attackRoll", {"ac": 30, "damage": "1d6"})
        result = D20Rules().resolve(RuleContext(
            state=tavern_context.state, scene=tavern_context.scene, hook=hook, rng=ScriptedRNG([20, 4, 5]),
        ))

        assert result.outcome == Outcome.SUCCESS
        assert result.data["critical"]
        assert result.data["damage"] == 9

    def test_damage_roll_proposes_clamped_hp_loss(self, tavern_context):
        hook = RuleHook("damageRoll", {"notation": "2d4+1"})
        result = D20Rules().resolve(RuleContext(
            state=tavern_context.state, scene=tavern_context.scene, hook=hook, rng=ScriptedRNG([2, 3]),
        ))
        assert result.effects == [ModifyStat("hp", -6, min=0)]

    def test_needs_rng(self, tavern_context):
        with pytest.raises(ValueError):
            D20Rules().resolve(RuleContext(
                state=tavern_context.state, scene=tavern_context.scene, hook=RuleHook("initiative"),
            ))


def test_builtin_catalog():
    assert set(BUILTIN_MODULES) == {"rules.core", "rules.d20"}
