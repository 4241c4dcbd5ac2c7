"""
Tests for the save format.
"""

import json

import pytest

from ..engine_core.navigator import SceneNavigator
from ..engine_core.rng import ScriptedRNG
from ..engine_core.rules import RuleModuleDispatcher
from ..engine_core.serialization import dumps_state, loads_state, state_from_dict, state_to_dict
from ..engine_core.state import STATE_VERSION, Character, VarKind
from ..errors import SaveLoadError
from ..rulesets import BUILTIN_MODULES


@pytest.fixture
def played_state(rookhaven, fixed_clock):
    """A state with inventory, vars, reputation and history."""
    navigator = SceneNavigator(
        rookhaven, dispatcher=RuleModuleDispatcher.for_bundle(rookhaven, BUILTIN_MODULES), clock=fixed_clock,
    )
    state = navigator.new_game(Character(name="Hero", stats={"str": 10, "hp": 5}, race_id="human"))
    state = navigator.select_action(state, "search_fountain").state
    state = navigator.traverse_exit(state, "to_tavern").state
    state = navigator.select_action(state, "arm_wrestle", rng=ScriptedRNG([10])).state
    state = navigator.select_action(state, "buy_round").state
    state.vars["party"] = {"members": ["Hero", "Mira"]}
    return state


class TestSerialization:
    """GameState to and from JSON."""

    def test_round_trip_is_lossless(self, played_state):
        assert loads_state(dumps_state(played_state)) == played_state

    def test_document_shape(self, played_state):
        document = state_to_dict(played_state)

        assert document["version"] == STATE_VERSION
        assert document["storyBundleId"] == "rookhaven"
        assert document["currentSceneId"] == "tavern"
        assert document["currentLocationId"] == "rookhaven_town"
        assert document["character"]["raceId"] == "human"
        assert document["reputation"] == {"dockers": 1}
        assert document["history"][0] == {"at": "2024-01-01T00:00:00.000Z", "type": "sceneEnter", "sceneId": "town_square"}
        json.dumps(document)

    def test_var_kinds_survive(self, played_state):
        restored = loads_state(dumps_state(played_state))
        assert restored.var_kind("tavern.wins") == VarKind.NUMBER
        assert restored.var_kind("party") == VarKind.STRUCTURED

    def test_malformed_save(self):
        with pytest.raises(SaveLoadError):
            state_from_dict({"version": "1.3.0"})

    @pytest.mark.parametrize("corrupt", [
        lambda d: d["character"]["stats"].update(str="10"),
        lambda d: d["character"]["stats"].update(str=True),
        lambda d: d["character"]["inventory"][0].update(count="1"),
        lambda d: d["character"]["inventory"][0].update(count=-1),
        lambda d: d["character"]["inventory"][0].update(item={"name": "no id"}),
        lambda d: d["flags"].update({"found.coin": "yes"}),
        lambda d: d["reputation"].update(dockers="high"),
    ])
    def test_wrongly_typed_fields_are_rejected(self, played_state, corrupt):
        document = state_to_dict(played_state)
        corrupt(document)
        with pytest.raises(SaveLoadError):
            state_from_dict(document)

    def test_invalid_json(self):
        with pytest.raises(SaveLoadError):
            loads_state("{oops")

    def test_non_object_document(self):
        with pytest.raises(SaveLoadError):
            loads_state("[1, 2]")

    def test_unknown_history_type(self, played_state):
        document = state_to_dict(played_state)
        document["history"][0]["type"] = "teleported"
        with pytest.raises(SaveLoadError):
            state_from_dict(document)
