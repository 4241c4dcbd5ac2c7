"""
Tests for sessions, the play loop and save slots.

Tests:
- Session lifecycle in the SessionManager
- Turn-by-turn play through PlayLoop
- SaveStore slots on disk
"""

import pytest

from ..bundle.models import StoryBundle
from ..engine_core.state import Character
from ..errors import BundleValidationError, SaveLoadError
from ..session import LoopState, PlayLoop, SaveStore, SessionManager, SessionState, UnknownBundle
from .conftest import minimal_bundle_dict


@pytest.fixture
def manager(rookhaven, rookhaven_lore):
    manager = SessionManager()
    manager.register_lore(rookhaven_lore)
    manager.register_bundle(rookhaven)
    return manager


@pytest.fixture
def session(manager):
    return manager.create_session("rookhaven", Character(name="Hero", stats={"str": 10, "dex": 10, "hp": 5}), seed=7)


class TestSessionManager:
    """Bundle registry and session lifecycle."""

    def test_create_session(self, manager, session):
        assert session.is_active()
        assert session.seed == 7
        assert session.game_state.current_scene_id == "town_square"
        assert session.game_state.lore_bundle_ids == ["rookhaven-lore"]
        assert manager.get_session(session.session_id) is session
        assert manager.list_active_sessions() == [session.session_id]

    def test_unknown_bundle(self, manager):
        with pytest.raises(UnknownBundle):
            manager.create_session("atlantis", Character(name="Hero"))

    def test_register_rejects_missing_modules(self, manager):
        data = minimal_bundle_dict()
        data["ruleModules"] = [{"id": "rules.unknown", "system": "Custom"}]
        with pytest.raises(BundleValidationError):
            manager.register_bundle(StoryBundle.from_dict(data))

    def test_end_session(self, manager, session):
        assert manager.end_session(session.session_id)
        assert session.state == SessionState.ENDED
        assert manager.get_session(session.session_id) is None
        assert not manager.end_session(session.session_id)

    def test_cleanup_stale_sessions(self, manager, session):
        session.created_at -= 7200
        assert manager.cleanup_stale_sessions(max_age_seconds=3600) == 1
        assert session.state == SessionState.ABANDONED

    def test_lore_conditions_use_registered_lore(self, manager, session):
        loop = PlayLoop(session)
        loop.take_exit("to_gate")
        assert "action:ask_guard" in [c.ref for c in loop.look().choices]

    def test_resume_session(self, manager, session):
        PlayLoop(session).choose_action("search_fountain")
        resumed = manager.resume_session(session.game_state.clone(), seed=1)

        assert resumed.session_id != session.session_id
        assert resumed.game_state.flag("found.coin")


class TestPlayLoop:
    """Turn results for presentation layers."""

    def test_look(self, session):
        turn = PlayLoop(session).look()

        assert turn.success
        assert turn.scene_id == "town_square"
        assert turn.title == "Town Square"
        assert [c.ref for c in turn.actions] == ["action:search_fountain"]
        assert [c.ref for c in turn.exits] == ["exit:0", "exit:1", "exit:2"]

    def test_successful_turn_advances_session(self, session):
        loop = PlayLoop(session)
        turn = loop.choose("action:search_fountain")

        assert turn.success
        assert turn.actions == []
        assert session.turn_number == 1
        assert session.game_state.character.item_count("coin") == 1

    def test_exit_turn_has_narrative(self, session):
        loop = PlayLoop(session)
        loop.choose_action("search_fountain")
        loop.take_exit("to_tavern")
        loop.choose_action("buy_round")
        turn = loop.take_exit("cellar_stairs")

        assert turn.success
        assert turn.scene_id == "cellar"
        assert turn.narrative[0] == "The barkeep looks away as you lift the trapdoor."
        assert turn.outcomes in (["success"], ["failure"])

    def test_rejected_turn_keeps_state(self, session):
        loop = PlayLoop(session)
        before = session.game_state
        turn = loop.choose_action("dance")

        assert not turn.success
        assert turn.error_code == "ACTION_UNAVAILABLE"
        assert session.game_state is before
        assert session.turn_number == 0
        assert turn.scene_id == "town_square"

    def test_invalid_ref(self, session):
        turn = PlayLoop(session).choose("teleport:moon")
        assert turn.error_code == "INVALID_CHOICE"

    def test_ended_session(self, manager, session):
        loop = PlayLoop(session)
        manager.end_session(session.session_id)
        turn = loop.choose_action("search_fountain")

        assert turn.error_code == "SESSION_ENDED"
        assert loop.state == LoopState.ENDED

    def test_seeded_sessions_replay_identically(self, manager):
        hero = {"name": "Hero", "stats": {"str": 10, "dex": 10, "hp": 5}}
        results = []
        for _ in range(2):
            session = manager.create_session("rookhaven", Character(**hero), seed=99)
            loop = PlayLoop(session)
            loop.take_exit("to_tavern")
            results.append([loop.choose_action("arm_wrestle").outcomes for _ in range(5)])
        assert results[0] == results[1]


class TestSaveStore:
    """Save slots on disk."""

    @pytest.fixture
    def store(self, tmp_path):
        return SaveStore(tmp_path / "saves")

    def test_save_and_load(self, store, session):
        meta = store.save("slot-1", session.game_state)

        assert meta.story_bundle_id == "rookhaven"
        assert meta.scene_id == "town_square"
        assert store.exists("slot-1")
        assert store.load("slot-1") == session.game_state

    def test_list_and_delete(self, store, session):
        store.save("a", session.game_state)
        store.save("b", session.game_state)
        assert [s.slot for s in store.list_slots()] == ["a", "b"]

        assert store.delete("a")
        assert not store.delete("a")
        assert [s.slot for s in store.list_slots()] == ["b"]

    def test_slot_names_cannot_escape(self, store, session):
        with pytest.raises(SaveLoadError):
            store.save("../outside", session.game_state)

    def test_missing_slot(self, store):
        with pytest.raises(SaveLoadError, match="does not exist"):
            store.load("ghost")

    def test_corrupt_slot_is_skipped_in_listing(self, store, session):
        store.save("good", session.game_state)
        (store.save_dir / "bad.json").write_text("{", encoding="utf-8")

        assert [s.slot for s in store.list_slots()] == ["good"]
        with pytest.raises(SaveLoadError):
            store.load("bad")

    def test_interrupted_write_keeps_previous_save(self, store, session, monkeypatch):
        store.save("slot-1", session.game_state)
        moved = session.game_state.clone()
        moved.current_scene_id = "tavern"

        def half_write(document, f, **kwargs):
            f.write("{")
            raise OSError("disk full")

        monkeypatch.setattr("json.dump", half_write)
        with pytest.raises(SaveLoadError):
            store.save("slot-1", moved)
        monkeypatch.undo()

        assert store.load("slot-1") == session.game_state
        assert list(store.save_dir.glob("*.tmp")) == []

    def test_default_dir_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOREWEAVE_SAVE_DIR", str(tmp_path / "env-saves"))
        assert SaveStore().save_dir == tmp_path / "env-saves"
