"""
Game State - the save state the engine reads and mutates.

Design principles:
- Plain data: flags, vars, stats and history are JSON-compatible
- Owned by one session: no global state, always passed explicitly
- Copyable: EffectApplier.apply and SceneNavigator work on clones,
  so a failed call never touches the caller's object
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from ..bundle.dsl import Item

STATE_VERSION = "1.3.0"

Clock = Callable[[], str]


def utc_now_iso() -> str:
    """Default clock: current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class HistoryEventType(Enum):
    SCENE_ENTER = "sceneEnter"
    SCENE_EXIT = "sceneExit"
    ACTION = "action"
    EFFECT = "effect"
    RULE = "rule"


@dataclass
class HistoryEvent:
    """One entry of the engine log kept inside the save."""
    at: str
    type: HistoryEventType
    scene_id: str | None = None
    action_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class InventoryEntry:
    item: Item
    count: int


@dataclass
class Character:
    """
    The player character.

    Stats are free-form numbers; the active rule system decides which
    ones exist. Missing stats read as 0.
    """
    name: str
    stats: dict[str, int | float] = field(default_factory=dict)
    inventory: list[InventoryEntry] = field(default_factory=list)
    id: str | None = None
    race_id: str | None = None
    faction_ids: list[str] = field(default_factory=list)
    flags: dict[str, bool] = field(default_factory=dict)

    def stat(self, key: str) -> int | float:
        return self.stats.get(key, 0)

    def item_count(self, item_id: str) -> int:
        """Total held count of an item id across inventory entries."""
        return sum(entry.count for entry in self.inventory if entry.item.id == item_id)


class VarKind(Enum):
    """Closed classification of values stored in GameState.vars."""
    NUMBER = "number"
    TEXT = "text"
    FLAG = "flag"
    STRUCTURED = "structured"

    @classmethod
    def of(cls, value: Any) -> VarKind:
        # bool is an int subclass, so it must be checked first
        if isinstance(value, bool):
            return cls.FLAG
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, str):
            return cls.TEXT
        return cls.STRUCTURED


@dataclass
class GameState:
    """
    Complete save state at a point in time.

    Only EffectApplier and SceneNavigator change it; everything else
    reads it.
    """
    story_bundle_id: str
    current_scene_id: str
    character: Character
    version: str = STATE_VERSION
    lore_bundle_ids: list[str] = field(default_factory=list)
    current_location_id: str | None = None
    flags: dict[str, bool] = field(default_factory=dict)
    vars: dict[str, Any] = field(default_factory=dict)
    reputation: dict[str, int | float] = field(default_factory=dict)
    history: list[HistoryEvent] = field(default_factory=list)

    def flag(self, key: str) -> bool:
        return bool(self.flags.get(key, False))

    def var_kind(self, key: str) -> VarKind | None:
        if key not in self.vars:
            return None
        return VarKind.of(self.vars[key])

    def clone(self) -> GameState:
        """Deep copy the state."""
        return deepcopy(self)
