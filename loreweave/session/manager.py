"""
Session Manager - creates and tracks play sessions.

LIFECYCLE:
1. Story bundles (and optional lore bundles) are registered once
2. A session is created for a bundle and a character
   - Rule modules are instantiated from the bundle's declarations
   - The session gets its own seeded RNG and GameState
3. During play the PlayLoop advances the session's state
4. The session is ended (or saved to a SaveStore first)

Sessions live in memory only. Bundles and rule modules are shared
read-only between sessions; GameState is never shared.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping
import logging
import random
import time
import uuid

from ..bundle.lore import LoreBundle, LoreIndex
from ..bundle.models import StoryBundle
from ..engine_core.conditions import ConditionEvaluator, ExpressionPredicate
from ..engine_core.navigator import SceneNavigator
from ..engine_core.rng import SeededRNG
from ..engine_core.rules import RuleModuleDispatcher, RuleModuleFactory
from ..engine_core.state import Character, GameState
from ..errors import LoreweaveError

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """State of a play session."""
    ACTIVE = "active"
    ENDED = "ended"
    ABANDONED = "abandoned"


class UnknownBundle(LoreweaveError):
    def __init__(self, bundle_id: str):
        self.bundle_id = bundle_id
        super().__init__(f"Story bundle '{bundle_id}' is not registered")


@dataclass
class Session:
    """
    One play-through of a story bundle.

    Contains:
    - The bundle and the navigator wired for it
    - The current GameState
    - The RNG seed, so a session can be replayed
    """
    session_id: str
    bundle: StoryBundle
    navigator: SceneNavigator
    game_state: GameState
    seed: int
    created_at: float

    state: SessionState = SessionState.ACTIVE
    turn_number: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE


class SessionManager:
    """
    Registry of bundles plus the sessions played on them.

    No persistence; use SaveStore to keep a state across restarts.
    """

    def __init__(
        self,
        catalog: Mapping[str, RuleModuleFactory] | None = None,
        expression_predicate: ExpressionPredicate | None = None,
    ):
        if catalog is None:
            from ..rulesets import BUILTIN_MODULES
            catalog = BUILTIN_MODULES
        self.catalog = catalog
        self.expression_predicate = expression_predicate
        self._bundles: dict[str, StoryBundle] = {}
        self._lore: dict[str, LoreBundle] = {}
        self._sessions: dict[str, Session] = {}

    # =========================================================================
    # Bundles
    # =========================================================================

    def register_bundle(self, bundle: StoryBundle) -> StoryBundle:
        """Register (or replace) a story bundle. Fails early if its rule modules are missing."""
        RuleModuleDispatcher.for_bundle(bundle, self.catalog)
        self._bundles[bundle.id] = bundle
        logger.info("Registered story bundle '%s' v%s", bundle.id, bundle.version)
        return bundle

    def register_lore(self, lore: LoreBundle) -> LoreBundle:
        self._lore[lore.id] = lore
        return lore

    def get_bundle(self, bundle_id: str) -> StoryBundle:
        bundle = self._bundles.get(bundle_id)
        if bundle is None:
            raise UnknownBundle(bundle_id)
        return bundle

    def list_bundles(self) -> list[StoryBundle]:
        return list(self._bundles.values())

    # =========================================================================
    # Sessions
    # =========================================================================

    def build_navigator(self, bundle: StoryBundle, seed: int) -> SceneNavigator:
        """Wire dispatcher, evaluator and RNG for one session."""
        dispatcher = RuleModuleDispatcher.for_bundle(bundle, self.catalog)
        lore_bundles = [self._lore[ref] for ref in bundle.lore_refs if ref in self._lore]
        evaluator = ConditionEvaluator(
            expression_predicate=self.expression_predicate,
            lore_index=LoreIndex(lore_bundles) if lore_bundles else None,
            delegate=dispatcher,
        )
        return SceneNavigator(bundle, dispatcher=dispatcher, evaluator=evaluator, rng=SeededRNG(seed))

    def create_session(self, bundle_id: str, character: Character, seed: int | None = None) -> Session:
        bundle = self.get_bundle(bundle_id)
        if seed is None:
            seed = random.randrange(2**31)
        navigator = self.build_navigator(bundle, seed)
        lore_ids = [ref for ref in bundle.lore_refs if ref in self._lore]
        game_state = navigator.new_game(character, lore_bundle_ids=lore_ids)
        return self._add(bundle, navigator, game_state, seed)

    def resume_session(self, game_state: GameState, seed: int | None = None) -> Session:
        """Start a session from a saved state."""
        bundle = self.get_bundle(game_state.story_bundle_id)
        if seed is None:
            seed = random.randrange(2**31)
        navigator = self.build_navigator(bundle, seed)
        navigator.get_current_scene(game_state)
        return self._add(bundle, navigator, game_state, seed)

    def _add(self, bundle: StoryBundle, navigator: SceneNavigator, game_state: GameState, seed: int) -> Session:
        session = Session(
            session_id=str(uuid.uuid4()),
            bundle=bundle,
            navigator=navigator,
            game_state=game_state,
            seed=seed,
            created_at=time.time(),
        )
        self._sessions[session.session_id] = session
        logger.info("Session %s started on '%s' (seed %d)", session.session_id, bundle.id, seed)
        return session

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def end_session(self, session_id: str, reason: str = "completed") -> bool:
        """End a session and drop it from memory."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.state = SessionState.ENDED if reason == "completed" else SessionState.ABANDONED
        logger.info("Session %s ended (%s)", session_id, reason)
        return True

    def list_active_sessions(self) -> list[str]:
        return [sid for sid, session in self._sessions.items() if session.is_active()]

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600) -> int:
        """Drop sessions older than max_age_seconds. Returns how many were removed."""
        now = time.time()
        stale = [sid for sid, s in self._sessions.items() if now - s.created_at > max_age_seconds]
        for session_id in stale:
            self.end_session(session_id, reason="stale")
        return len(stale)
