"""
Navigation results - what the SceneNavigator hands back to its caller.

A NavigationResult contains:
- Whether the choice was accepted
- The resulting state (the original, untouched object on failure)
- The gating error, if any
- Narrative lines and rule outcomes produced along the way
- Diagnostics for problems that degraded to a safe default
"""

from __future__ import annotations
from dataclasses import dataclass, field

from ..bundle.models import Action, Exit, Scene
from ..errors import Diagnostic, NavigationError
from .rules import Outcome
from .state import GameState


@dataclass
class NavigationResult:
    success: bool
    state: GameState
    error: NavigationError | None = None

    narrative: list[str] = field(default_factory=list)
    outcomes: list[Outcome] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def error_code(self) -> str | None:
        return self.error.error_code if self.error else None

    @classmethod
    def failure(cls, state: GameState, error: NavigationError) -> NavigationResult:
        """Create a failure result carrying the unmodified state."""
        return cls(success=False, state=state, error=error)

    @classmethod
    def success_with_state(
        cls,
        state: GameState,
        narrative: list[str] | None = None,
        outcomes: list[Outcome] | None = None,
        diagnostics: list[Diagnostic] | None = None,
    ) -> NavigationResult:
        """Create a success result with the new state."""
        return cls(
            success=True,
            state=state,
            narrative=narrative or [],
            outcomes=outcomes or [],
            diagnostics=diagnostics or [],
        )


@dataclass
class SceneView:
    """Read-only snapshot of the current scene for a presentation layer."""
    scene: Scene
    text: str
    actions: list[Action]
    exits: list[tuple[int, Exit]]  # declared index, exit
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def title(self) -> str:
        return self.scene.title or self.scene.id
