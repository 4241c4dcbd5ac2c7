"""
Session Module - play sessions over story bundles.

A session represents one play-through:
- Created for a registered story bundle and a character
- Holds the current GameState and a seeded RNG
- Advanced turn by turn through a PlayLoop
- Optionally written to a SaveStore slot and resumed later
"""

from .manager import SessionManager, Session, SessionState, UnknownBundle
from .play_loop import PlayLoop, LoopState, TurnResult, ChoiceView
from .saves import SaveStore, SaveSlot

__all__ = [
    "SessionManager",
    "Session",
    "SessionState",
    "UnknownBundle",
    "PlayLoop",
    "LoopState",
    "TurnResult",
    "ChoiceView",
    "SaveStore",
    "SaveSlot",
]
