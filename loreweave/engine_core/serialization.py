"""
Save format - GameState to and from JSON.

The document uses the camelCase field names of the bundle format:

    {"version": "1.3.0", "storyBundleId": "...", "currentSceneId": "...",
     "character": {...}, "flags": {...}, "vars": {...}, "history": [...]}

The round trip is lossless, including history.
"""

from __future__ import annotations
import json
from typing import Any

from ..bundle.dsl import Item
from ..errors import BundleFormatError, SaveLoadError
from .state import Character, GameState, HistoryEvent, HistoryEventType, InventoryEntry


def _number_map(raw: Any, field_name: str) -> dict[str, int | float]:
    """Stats and reputation must be numbers; bools are rejected."""
    values = dict(raw or {})
    for key, value in values.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SaveLoadError(f"{field_name}['{key}'] must be a number, got {value!r}")
    return values


def _flag_map(raw: Any, field_name: str) -> dict[str, bool]:
    values = dict(raw or {})
    for key, value in values.items():
        if not isinstance(value, bool):
            raise SaveLoadError(f"{field_name}['{key}'] must be true or false, got {value!r}")
    return values


def _inventory_entry(raw: dict[str, Any]) -> InventoryEntry:
    count = raw["count"]
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise SaveLoadError(f"Inventory count must be a non-negative integer, got {count!r}")
    return InventoryEntry(item=Item.from_dict(raw["item"]), count=count)


def character_to_dict(character: Character) -> dict[str, Any]:
    result: dict[str, Any] = {
        "name": character.name,
        "stats": dict(character.stats),
        "inventory": [{"item": e.item.to_dict(), "count": e.count} for e in character.inventory],
        "factionIds": list(character.faction_ids),
        "flags": dict(character.flags),
    }
    if character.id is not None:
        result["id"] = character.id
    if character.race_id is not None:
        result["raceId"] = character.race_id
    return result


def character_from_dict(data: dict[str, Any]) -> Character:
    return Character(
        id=data.get("id"),
        name=data["name"],
        stats=_number_map(data.get("stats"), "stats"),
        inventory=[_inventory_entry(e) for e in data.get("inventory") or []],
        race_id=data.get("raceId"),
        faction_ids=list(data.get("factionIds") or []),
        flags=_flag_map(data.get("flags"), "character.flags"),
    )


def history_event_to_dict(event: HistoryEvent) -> dict[str, Any]:
    result: dict[str, Any] = {"at": event.at, "type": event.type.value}
    if event.scene_id is not None:
        result["sceneId"] = event.scene_id
    if event.action_id is not None:
        result["actionId"] = event.action_id
    if event.data:
        result["data"] = event.data
    return result


def history_event_from_dict(data: dict[str, Any]) -> HistoryEvent:
    return HistoryEvent(
        at=data["at"],
        type=HistoryEventType(data["type"]),
        scene_id=data.get("sceneId"),
        action_id=data.get("actionId"),
        data=dict(data.get("data") or {}),
    )


def state_to_dict(state: GameState) -> dict[str, Any]:
    result: dict[str, Any] = {
        "version": state.version,
        "storyBundleId": state.story_bundle_id,
        "loreBundleIds": list(state.lore_bundle_ids),
        "currentSceneId": state.current_scene_id,
        "character": character_to_dict(state.character),
        "flags": dict(state.flags),
        "vars": json.loads(json.dumps(state.vars)),
        "reputation": dict(state.reputation),
        "history": [history_event_to_dict(e) for e in state.history],
    }
    if state.current_location_id is not None:
        result["currentLocationId"] = state.current_location_id
    return result


def state_from_dict(data: dict[str, Any]) -> GameState:
    """Rebuild a GameState, raising SaveLoadError for malformed saves."""
    try:
        return GameState(
            version=data["version"],
            story_bundle_id=data["storyBundleId"],
            lore_bundle_ids=list(data.get("loreBundleIds") or []),
            current_scene_id=data["currentSceneId"],
            current_location_id=data.get("currentLocationId"),
            character=character_from_dict(data["character"]),
            flags=_flag_map(data.get("flags"), "flags"),
            vars=dict(data.get("vars") or {}),
            reputation=_number_map(data.get("reputation"), "reputation"),
            history=[history_event_from_dict(e) for e in data.get("history") or []],
        )
    except (KeyError, TypeError, ValueError, BundleFormatError) as exc:
        raise SaveLoadError(f"Malformed save state: {exc}") from exc


def dumps_state(state: GameState, indent: int | None = None) -> str:
    return json.dumps(state_to_dict(state), indent=indent)


def loads_state(text: str) -> GameState:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SaveLoadError(f"Invalid save JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SaveLoadError("Save document must be a JSON object")
    return state_from_dict(data)
