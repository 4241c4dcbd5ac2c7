"""
Tests for the EffectApplier.

Tests:
- Each effect type
- Ordering and immutability of the input state
- No-op effects and their diagnostics
- History recording
"""

import pytest

from ..bundle.dsl import (
    AddItem,
    Item,
    ModifyStat,
    ModifyVar,
    RemoveItem,
    SetFlag,
    SetReputation,
    SetVar,
    Teleport,
)
from ..engine_core.effects import EffectApplier, apply_effects
from ..engine_core.serialization import state_to_dict
from ..engine_core.state import HistoryEventType, InventoryEntry
from ..errors import DiagnosticCode, DiagnosticSink

COIN = Item(id="coin", name="Coin")


@pytest.fixture
def applier(rookhaven, fixed_clock):
    return EffectApplier(bundle=rookhaven, clock=fixed_clock)


class TestApply:
    """Basic effect semantics."""

    def test_input_state_is_untouched(self, applier, town_square_state):
        before = town_square_state.clone()
        new_state = applier.apply(town_square_state, [SetFlag("a"), ModifyStat("str", 2)])

        assert town_square_state == before
        assert new_state.flags == {"a": True}
        assert new_state.character.stats["str"] == 12

    def test_effects_apply_in_order(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [SetVar("x", 1), ModifyVar("x", 2), SetVar("x", 10)])
        assert new_state.vars["x"] == 10

    def test_modify_stat_clamps(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [ModifyStat("hp", -10, min=0)])
        assert new_state.character.stats["hp"] == 0

        new_state = applier.apply(town_square_state, [ModifyStat("hp", 10, max=8)])
        assert new_state.character.stats["hp"] == 8

    def test_modify_missing_stat_starts_at_zero(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [ModifyStat("luck", 3)])
        assert new_state.character.stats["luck"] == 3

    def test_add_item_stacks(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [AddItem(COIN, 2), AddItem(COIN, 1)])
        assert len(new_state.character.inventory) == 1
        assert new_state.character.item_count("coin") == 3

    def test_remove_item_spans_entries(self, applier, town_square_state):
        town_square_state.character.inventory = [InventoryEntry(COIN, 1), InventoryEntry(COIN, 2)]
        new_state = applier.apply(town_square_state, [RemoveItem("coin", 2)])

        assert new_state.character.item_count("coin") == 1
        assert all(entry.count > 0 for entry in new_state.character.inventory)

    def test_remove_more_than_held_empties(self, applier, town_square_state):
        town_square_state.character.inventory = [InventoryEntry(COIN, 1)]
        new_state = applier.apply(town_square_state, [RemoveItem("coin", 5)])
        assert new_state.character.inventory == []

    def test_remove_unheld_item_leaves_inventory_unchanged(self, applier, town_square_state):
        rope = Item(id="rope", name="Rope")
        town_square_state.character.inventory = [InventoryEntry(COIN, 2), InventoryEntry(rope, 1)]
        before = state_to_dict(town_square_state)["character"]["inventory"]
        sink = DiagnosticSink()

        new_state = applier.apply(town_square_state, [RemoveItem("lantern")], diagnostics=sink)

        assert state_to_dict(new_state)["character"]["inventory"] == before
        assert len(sink) == 0
        assert new_state.history == []

    def test_set_reputation(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [SetReputation("dockers", 3)])
        assert new_state.reputation == {"dockers": 3}

    def test_convenience_function(self, town_square_state):
        new_state = apply_effects(town_square_state, [SetFlag("quick")])
        assert new_state.flag("quick")


class TestModifyVar:
    """modifyVar adds numbers, appends text, and rejects mixed kinds."""

    def test_missing_var_takes_delta(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [ModifyVar("journal", "Day one. ")])
        assert new_state.vars["journal"] == "Day one. "

    def test_numbers_add_and_text_appends(self, applier, town_square_state):
        town_square_state.vars.update({"gold": 5, "journal": "A. "})
        new_state = applier.apply(town_square_state, [ModifyVar("gold", -2), ModifyVar("journal", "B.")])
        assert new_state.vars == {"gold": 3, "journal": "A. B."}

    def test_type_mismatch_is_reported_no_op(self, applier, town_square_state):
        town_square_state.vars["gold"] = 5
        sink = DiagnosticSink()
        new_state = applier.apply(town_square_state, [ModifyVar("gold", "lots")], sink)

        assert new_state.vars["gold"] == 5
        assert sink.codes() == [DiagnosticCode.TYPE_MISMATCH]

    def test_flag_var_is_not_a_number(self, applier, town_square_state):
        town_square_state.vars["lit"] = True
        sink = DiagnosticSink()
        new_state = applier.apply(town_square_state, [ModifyVar("lit", 1)], sink)

        assert new_state.vars["lit"] is True
        assert sink.codes() == [DiagnosticCode.TYPE_MISMATCH]


class TestTeleport:
    """Teleport moves the scene pointer and resolves the location."""

    def test_teleport_fills_location_from_bundle(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [Teleport("cellar")])
        assert new_state.current_scene_id == "cellar"
        assert new_state.current_location_id == "tavern_cellar"

    def test_explicit_location_wins(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [Teleport("forest_road", "rookhaven_town")])
        assert new_state.current_location_id == "rookhaven_town"

    def test_unknown_scene_is_ignored(self, applier, town_square_state):
        sink = DiagnosticSink()
        new_state = applier.apply(town_square_state, [Teleport("atlantis")], sink)

        assert new_state.current_scene_id == "town_square"
        assert sink.codes() == [DiagnosticCode.UNKNOWN_SCENE]


class TestHistory:
    """Applied effects are logged; no-ops are not."""

    def test_each_applied_effect_is_recorded(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [SetFlag("a"), AddItem(COIN)])
        events = [e for e in new_state.history if e.type == HistoryEventType.EFFECT]

        assert [e.data["kind"] for e in events] == ["setFlag", "addItem"]
        assert events[0].data["payload"] == {"key": "a", "value": True}
        assert events[0].at == "2024-01-01T00:00:00.000Z"
        assert events[0].scene_id == "town_square"

    def test_no_op_effects_are_not_recorded(self, applier, town_square_state):
        new_state = applier.apply(town_square_state, [RemoveItem("coin"), AddItem(COIN, 0), Teleport("atlantis")])
        assert new_state.history == []

    def test_history_can_be_disabled(self, rookhaven, town_square_state):
        applier = EffectApplier(bundle=rookhaven, record_history=False)
        new_state = applier.apply(town_square_state, [SetFlag("a")])
        assert new_state.history == []
