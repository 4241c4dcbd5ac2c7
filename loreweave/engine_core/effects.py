"""
Effect Applier - the only writer of GameState outside the navigator.

Effects apply strictly in declaration order; each one sees the state
left by the previous one. Unknown or ill-typed changes degrade to a
reported no-op instead of raising.
"""

from __future__ import annotations
from copy import deepcopy
from typing import Iterable, assert_never
import logging

from ..bundle.dsl import (
    AddItem,
    Effect,
    ModifyStat,
    ModifyVar,
    RemoveItem,
    SetFlag,
    SetReputation,
    SetVar,
    Teleport,
    effect_payload,
)
from ..bundle.models import StoryBundle
from ..errors import Diagnostic, DiagnosticCode, DiagnosticSink
from .state import Clock, GameState, HistoryEvent, HistoryEventType, InventoryEntry, VarKind, utc_now_iso

logger = logging.getLogger(__name__)


class EffectApplier:
    """
    Applies effect lists to a GameState.

    With a bundle, teleports are checked against the story graph and
    fill in the target scene's location. With record_history, every
    applied effect is logged to state.history.
    """

    def __init__(
        self,
        bundle: StoryBundle | None = None,
        clock: Clock = utc_now_iso,
        record_history: bool = True,
    ):
        self.bundle = bundle
        self.clock = clock
        self.record_history = record_history

    def apply(
        self, state: GameState, effects: Iterable[Effect], diagnostics: DiagnosticSink | None = None
    ) -> GameState:
        """Return a new state with the effects applied; the input is untouched."""
        new_state = state.clone()
        found = self.apply_in_place(new_state, effects)
        if diagnostics is not None:
            diagnostics.extend(found)
        return new_state

    def apply_in_place(self, state: GameState, effects: Iterable[Effect]) -> list[Diagnostic]:
        """Mutate the state directly and return any diagnostics raised along the way."""
        sink = DiagnosticSink(logger)
        for effect in effects:
            if self._apply_one(state, effect, sink) and self.record_history:
                state.history.append(HistoryEvent(
                    at=self.clock(),
                    type=HistoryEventType.EFFECT,
                    scene_id=state.current_scene_id,
                    data={"kind": effect.type, "payload": effect_payload(effect)},
                ))
        return sink.diagnostics

    def _apply_one(self, state: GameState, effect: Effect, sink: DiagnosticSink) -> bool:
        """Apply a single effect. Returns False when it was a no-op."""
        if isinstance(effect, SetFlag):
            state.flags[effect.key] = effect.value
            return True
        if isinstance(effect, ModifyStat):
            return self._apply_modify_stat(state, effect)
        if isinstance(effect, AddItem):
            return self._apply_add_item(state, effect)
        if isinstance(effect, RemoveItem):
            return self._apply_remove_item(state, effect)
        if isinstance(effect, SetVar):
            state.vars[effect.key] = deepcopy(effect.value)
            return True
        if isinstance(effect, ModifyVar):
            return self._apply_modify_var(state, effect, sink)
        if isinstance(effect, Teleport):
            return self._apply_teleport(state, effect, sink)
        if isinstance(effect, SetReputation):
            state.reputation[effect.faction_id] = effect.value
            return True
        assert_never(effect)

    def _apply_modify_stat(self, state: GameState, effect: ModifyStat) -> bool:
        value = state.character.stat(effect.key) + effect.delta
        if effect.min is not None:
            value = max(effect.min, value)
        if effect.max is not None:
            value = min(effect.max, value)
        state.character.stats[effect.key] = value
        return True

    def _apply_add_item(self, state: GameState, effect: AddItem) -> bool:
        if effect.count <= 0:
            return False
        for entry in state.character.inventory:
            if entry.item.id == effect.item.id:
                entry.count += effect.count
                return True
        state.character.inventory.append(InventoryEntry(item=effect.item, count=effect.count))
        return True

    def _apply_remove_item(self, state: GameState, effect: RemoveItem) -> bool:
        remaining = effect.count
        held = state.character.item_count(effect.item_id)
        if held == 0 or remaining <= 0:
            return False
        for entry in state.character.inventory:
            if remaining == 0:
                break
            if entry.item.id != effect.item_id:
                continue
            taken = min(entry.count, remaining)
            entry.count -= taken
            remaining -= taken
        state.character.inventory = [e for e in state.character.inventory if e.count > 0]
        return True

    def _apply_modify_var(self, state: GameState, effect: ModifyVar, sink: DiagnosticSink) -> bool:
        if effect.key not in state.vars:
            state.vars[effect.key] = deepcopy(effect.delta)
            return True

        current = state.vars[effect.key]
        current_kind = VarKind.of(current)
        delta_kind = VarKind.of(effect.delta)
        if current_kind == VarKind.NUMBER and delta_kind == VarKind.NUMBER:
            state.vars[effect.key] = current + effect.delta
            return True
        if current_kind == VarKind.TEXT and delta_kind == VarKind.TEXT:
            state.vars[effect.key] = current + effect.delta
            return True

        sink.report(
            DiagnosticCode.TYPE_MISMATCH,
            f"Cannot modify {current_kind.value} var '{effect.key}' by a {delta_kind.value} delta",
            key=effect.key,
            var_kind=current_kind.value,
            delta_kind=delta_kind.value,
        )
        return False

    def _apply_teleport(self, state: GameState, effect: Teleport, sink: DiagnosticSink) -> bool:
        if self.bundle is not None and not self.bundle.has_scene(effect.target_scene):
            sink.report(
                DiagnosticCode.UNKNOWN_SCENE,
                f"Teleport to unknown scene '{effect.target_scene}' ignored",
                scene_id=effect.target_scene,
            )
            return False

        state.current_scene_id = effect.target_scene
        if effect.target_location_id:
            state.current_location_id = effect.target_location_id
        elif self.bundle is not None:
            location_id = self.bundle.location_for_scene(effect.target_scene)
            if location_id:
                state.current_location_id = location_id
        return True


def apply_effects(state: GameState, effects: Iterable[Effect], bundle: StoryBundle | None = None) -> GameState:
    """Convenience function to apply effects without building an applier."""
    return EffectApplier(bundle=bundle).apply(state, effects)
