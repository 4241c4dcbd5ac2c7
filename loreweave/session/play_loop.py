"""
Play Loop - one turn at a time over a Session.

The loop:
1. Describe the current scene (text, actions, exits)
2. Player picks an action or an exit
3. Navigator resolves the choice
4. On success the session adopts the new state
5. Repeat

Every call returns a TurnResult that a CLI or API can render as is.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from ..engine_core.result import NavigationResult

if TYPE_CHECKING:
    from .manager import Session


class LoopState(Enum):
    WAITING_CHOICE = "waiting_choice"
    ENDED = "ended"


@dataclass
class ChoiceView:
    """An action or exit as offered to the player."""
    ref: str
    label: str
    kind: str  # "action" or "exit"


@dataclass
class TurnResult:
    """
    Result of one turn.

    Contains the scene as it now stands, the narrative produced by the
    choice, and any problems met on the way.
    """
    success: bool
    loop_state: LoopState

    scene_id: str = ""
    title: str = ""
    text: str = ""
    choices: list[ChoiceView] = field(default_factory=list)

    # Produced by the choice
    narrative: list[str] = field(default_factory=list)
    outcomes: list[str] = field(default_factory=list)

    # Errors/warnings
    errors: list[str] = field(default_factory=list)
    error_code: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def actions(self) -> list[ChoiceView]:
        return [c for c in self.choices if c.kind == "action"]

    @property
    def exits(self) -> list[ChoiceView]:
        return [c for c in self.choices if c.kind == "exit"]


class PlayLoop:
    """
    Turn driver for a session.

    Usage:
        loop = PlayLoop(session)
        turn = loop.look()
        turn = loop.choose_action("search_fountain")
        turn = loop.take_exit("to_tavern")
    """

    def __init__(self, session: Session):
        self.session = session
        self.state = LoopState.WAITING_CHOICE if session.is_active() else LoopState.ENDED

    def look(self) -> TurnResult:
        """Describe the current scene without changing anything."""
        return self._describe(TurnResult(success=True, loop_state=self.state))

    def choose_action(self, action_id: str) -> TurnResult:
        if not self.session.is_active():
            return self._ended()
        result = self.session.navigator.select_action(self.session.game_state, action_id)
        return self._finish(result)

    def take_exit(self, exit_ref: int | str) -> TurnResult:
        if not self.session.is_active():
            return self._ended()
        result = self.session.navigator.traverse_exit(self.session.game_state, exit_ref)
        return self._finish(result)

    def choose(self, ref: str) -> TurnResult:
        """Pick by ref as listed in TurnResult.choices: "action:<id>" or "exit:<index>"."""
        kind, _, value = ref.partition(":")
        if kind == "action":
            return self.choose_action(value)
        if kind == "exit" and value.isdigit():
            return self.take_exit(int(value))
        return self._describe(TurnResult(
            success=False,
            loop_state=self.state,
            errors=[f"Unknown choice {ref!r}"],
            error_code="INVALID_CHOICE",
        ))

    def _finish(self, result: NavigationResult) -> TurnResult:
        turn = TurnResult(
            success=result.success,
            loop_state=self.state,
            narrative=list(result.narrative),
            outcomes=[o.value for o in result.outcomes],
            warnings=[d.message for d in result.diagnostics],
        )
        if result.success:
            self.session.game_state = result.state
            self.session.turn_number += 1
        else:
            turn.errors.append(str(result.error))
            turn.error_code = result.error_code
        return self._describe(turn)

    def _describe(self, turn: TurnResult) -> TurnResult:
        view = self.session.navigator.describe_scene(self.session.game_state)
        turn.scene_id = view.scene.id
        turn.title = view.title
        turn.text = view.text
        turn.choices = [ChoiceView(ref=f"action:{a.id}", label=a.label, kind="action") for a in view.actions]
        turn.choices += [ChoiceView(ref=f"exit:{i}", label=e.label, kind="exit") for i, e in view.exits]
        turn.warnings += [d.message for d in view.diagnostics]
        return turn

    def _ended(self) -> TurnResult:
        self.state = LoopState.ENDED
        return TurnResult(
            success=False,
            loop_state=self.state,
            errors=["Session has ended"],
            error_code="SESSION_ENDED",
        )
