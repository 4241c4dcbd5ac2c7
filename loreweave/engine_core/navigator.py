"""
Scene Navigator - orchestrates one player choice at a time.

Per choice:
1. Re-derive the available set (a choice is never trusted blindly)
2. Resolve attached rule hooks through the dispatcher, applying each
   hook's proposed effects immediately
3. Apply the choice's own effects
4. Move the scene pointer (exits only), running exit rules with the
   old scene and entry rules with the new one

Work happens on a clone of the caller's state; a rejected choice
returns the original object untouched.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Iterable
import logging

from ..bundle.dsl import RuleHook
from ..bundle.models import Action, Exit, Scene, StoryBundle
from ..errors import ActionUnavailable, DiagnosticSink, ExitUnavailable, SceneNotFound
from .conditions import ConditionEvaluator, EvaluationContext
from .effects import EffectApplier
from .narrative import resolve_text
from .result import NavigationResult, SceneView
from .rng import RNG, SeededRNG
from .rules import Outcome, RuleContext, RuleModuleDispatcher
from .state import Character, Clock, GameState, HistoryEvent, HistoryEventType, utc_now_iso

logger = logging.getLogger(__name__)


class NavigatorPhase(Enum):
    """AT_SCENE is the resting phase; the others only exist during a call."""
    AT_SCENE = "at_scene"
    RESOLVING = "resolving"
    TRANSITIONING = "transitioning"


class SceneNavigator:
    """
    Drives a GameState through a story bundle.

    Stateless between calls apart from the collaborators; one navigator
    can serve many sessions of the same bundle.
    """

    def __init__(
        self,
        bundle: StoryBundle,
        dispatcher: RuleModuleDispatcher | None = None,
        evaluator: ConditionEvaluator | None = None,
        applier: EffectApplier | None = None,
        rng: RNG | None = None,
        clock: Clock = utc_now_iso,
        record_history: bool = True,
    ):
        self.bundle = bundle
        self.dispatcher = dispatcher or RuleModuleDispatcher(system=bundle.primary_system)
        self.evaluator = evaluator or ConditionEvaluator(delegate=self.dispatcher)
        self.applier = applier or EffectApplier(bundle=bundle, clock=clock, record_history=record_history)
        self.rng = rng or SeededRNG()
        self.clock = clock
        self.record_history = record_history
        self.phase = NavigatorPhase.AT_SCENE

    # =========================================================================
    # Game setup & reads
    # =========================================================================

    def new_game(
        self,
        character: Character,
        *,
        location_id: str | None = None,
        lore_bundle_ids: Iterable[str] = (),
    ) -> GameState:
        """Create a fresh state at the start scene. Entry rules of the start scene are not run."""
        start = self.bundle.story.start_scene
        if not self.bundle.has_scene(start):
            raise SceneNotFound(start)
        state = GameState(
            story_bundle_id=self.bundle.id,
            current_scene_id=start,
            current_location_id=location_id or self.bundle.location_for_scene(start),
            character=character,
            lore_bundle_ids=list(lore_bundle_ids),
        )
        self._record(state, HistoryEventType.SCENE_ENTER, scene_id=start)
        logger.info("New game in '%s' for %s at '%s'", self.bundle.id, character.name, start)
        return state

    def get_current_scene(self, state: GameState) -> Scene:
        scene = self.bundle.get_scene(state.current_scene_id)
        if scene is None:
            raise SceneNotFound(state.current_scene_id)
        return scene

    def list_available_exits(self, state: GameState, diagnostics: DiagnosticSink | None = None) -> list[Exit]:
        return [exit_ for _, exit_ in self._available_exits(state, diagnostics)]

    def list_available_actions(self, state: GameState, diagnostics: DiagnosticSink | None = None) -> list[Action]:
        scene = self.get_current_scene(state)
        context = self._context(state)
        return [
            action for action in scene.actions
            if self.evaluator.evaluate(action.condition, state, context, diagnostics)
        ]

    def describe_scene(self, state: GameState, *, rng: RNG | None = None) -> SceneView:
        """Resolve the current scene for display. Only consumes randomness if an RNG is given."""
        sink = DiagnosticSink(logger)
        scene = self.get_current_scene(state)
        return SceneView(
            scene=scene,
            text=resolve_text(scene.narrative.text, state, self.evaluator, rng, sink),
            actions=self.list_available_actions(state, sink),
            exits=self._available_exits(state, sink),
            diagnostics=sink.diagnostics,
        )

    # =========================================================================
    # Choices
    # =========================================================================

    def select_action(self, state: GameState, action_id: str, *, rng: RNG | None = None) -> NavigationResult:
        """
        Perform an action in the current scene.

        Hooks resolve in declaration order, then the action's effects apply.
        """
        scene = self.get_current_scene(state)
        sink = DiagnosticSink(logger)
        action = next((a for a in self.list_available_actions(state, sink) if a.id == action_id), None)
        if action is None:
            result = NavigationResult.failure(state, ActionUnavailable(scene.id, action_id))
            result.diagnostics = sink.diagnostics
            return result

        work = state.clone()
        narrative: list[str] = []
        outcomes: list[Outcome] = []
        self._record(work, HistoryEventType.ACTION, scene_id=scene.id, action_id=action.id)
        try:
            for hook in action.rule_hooks:
                self._run_hook(work, scene, hook, action, rng, sink, narrative, outcomes)
            self.phase = NavigatorPhase.RESOLVING
            sink.extend(self.applier.apply_in_place(work, action.effects))
        finally:
            self.phase = NavigatorPhase.AT_SCENE

        logger.debug("Action '%s' in '%s' -> scene '%s'", action.id, scene.id, work.current_scene_id)
        return NavigationResult.success_with_state(work, narrative, outcomes, sink.diagnostics)

    def traverse_exit(self, state: GameState, exit_ref: int | str, *, rng: RNG | None = None) -> NavigationResult:
        """
        Leave the current scene through an exit.

        exit_ref is an index into the scene's declared exits, an exit id,
        or the target scene id.
        """
        scene = self.get_current_scene(state)
        sink = DiagnosticSink(logger)
        exit_ = _find_exit(self._available_exits(state, sink), exit_ref)
        if exit_ is None:
            result = NavigationResult.failure(state, ExitUnavailable(scene.id, exit_ref))
            result.diagnostics = sink.diagnostics
            return result

        target = self.bundle.get_scene(exit_.target_scene)
        if target is None:
            raise SceneNotFound(exit_.target_scene)

        work = state.clone()
        narrative: list[str] = []
        outcomes: list[Outcome] = []
        try:
            for hook in scene.exit_rules:
                self._run_hook(work, scene, hook, None, rng, sink, narrative, outcomes)
            self._record(work, HistoryEventType.SCENE_EXIT, scene_id=scene.id)

            self.phase = NavigatorPhase.TRANSITIONING
            travel = resolve_text(exit_.travel_text, work, self.evaluator, None, sink)
            if travel:
                narrative.append(travel)
            work.current_scene_id = target.id
            location_id = self.bundle.location_for_scene(target.id)
            if location_id:
                work.current_location_id = location_id
            self._record(work, HistoryEventType.SCENE_ENTER, scene_id=target.id)

            for hook in target.entry_rules:
                self._run_hook(work, target, hook, None, rng, sink, narrative, outcomes)
        finally:
            self.phase = NavigatorPhase.AT_SCENE

        logger.debug("Exit '%s' from '%s' -> '%s'", exit_.label, scene.id, target.id)
        return NavigationResult.success_with_state(work, narrative, outcomes, sink.diagnostics)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _available_exits(self, state: GameState, diagnostics: DiagnosticSink | None) -> list[tuple[int, Exit]]:
        scene = self.get_current_scene(state)
        context = self._context(state)
        return [
            (i, exit_) for i, exit_ in enumerate(scene.exits)
            if self.evaluator.evaluate(exit_.condition, state, context, diagnostics)
        ]

    def _context(self, state: GameState) -> EvaluationContext:
        return EvaluationContext(scene_id=state.current_scene_id, location_id=state.current_location_id)

    def _run_hook(
        self,
        work: GameState,
        scene: Scene,
        hook: RuleHook,
        action: Action | None,
        rng: RNG | None,
        sink: DiagnosticSink,
        narrative: list[str],
        outcomes: list[Outcome],
    ):
        """Resolve one hook and apply its proposed effects to the working state."""
        self.phase = NavigatorPhase.RESOLVING
        context = RuleContext(state=work, scene=scene, action=action, hook=hook, rng=rng or self.rng)
        result = self.dispatcher.resolve(hook, context, sink)
        if result.narrative:
            narrative.append(result.narrative)
        if result.outcome is not None:
            outcomes.append(result.outcome)

        data: dict[str, Any] = {"hook": hook.type}
        if hook.module_id:
            data["moduleId"] = hook.module_id
        if result.outcome is not None:
            data["outcome"] = result.outcome.value
        if result.data:
            data["result"] = result.data
        self._record(work, HistoryEventType.RULE, scene_id=scene.id, action_id=action.id if action else None, data=data)

        sink.extend(self.applier.apply_in_place(work, result.effects))

    def _record(
        self,
        state: GameState,
        event_type: HistoryEventType,
        scene_id: str | None = None,
        action_id: str | None = None,
        data: dict[str, Any] | None = None,
    ):
        if not self.record_history:
            return
        state.history.append(HistoryEvent(
            at=self.clock(), type=event_type, scene_id=scene_id, action_id=action_id, data=data or {},
        ))


def _find_exit(available: list[tuple[int, Exit]], exit_ref: int | str) -> Exit | None:
    """Pick an available exit by declared index, exit id, or target scene id."""
    if isinstance(exit_ref, int) and not isinstance(exit_ref, bool):
        return next((exit_ for i, exit_ in available if i == exit_ref), None)
    for _, exit_ in available:
        if exit_.id is not None and exit_.id == exit_ref:
            return exit_
    for _, exit_ in available:
        if exit_.target_scene == exit_ref:
            return exit_
    return None
