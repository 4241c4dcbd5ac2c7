"""
Save Store - named save slots on local disk.

The store:
- Keeps one JSON file per slot
- Wraps the save state with slot metadata (bundle, scene, time)
- Needs no database; the directory is the whole backend

Slot names are restricted to letters, digits, "-" and "_" so they can
never escape the save directory.
"""

from __future__ import annotations
import json
import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..engine_core.serialization import state_from_dict, state_to_dict
from ..engine_core.state import GameState
from ..errors import SaveLoadError

logger = logging.getLogger(__name__)

_SLOT_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@dataclass
class SaveSlot:
    """Metadata for a stored save."""
    slot: str
    story_bundle_id: str
    scene_id: str
    saved_at: float


class SaveStore:
    """
    File-based store for GameStates.

    Usage:
        store = SaveStore(save_dir="~/.loreweave/saves")
        store.save("slot1", state)
        state = store.load("slot1")
    """

    def __init__(self, save_dir: str | Path | None = None):
        if save_dir is None:
            save_dir = os.getenv("LOREWEAVE_SAVE_DIR") or Path.home() / ".loreweave" / "saves"
        self.save_dir = Path(save_dir).expanduser()
        self.save_dir.mkdir(parents=True, exist_ok=True)

    def save(self, slot: str, state: GameState) -> SaveSlot:
        path = self._get_path(slot)
        meta = SaveSlot(
            slot=slot,
            story_bundle_id=state.story_bundle_id,
            scene_id=state.current_scene_id,
            saved_at=time.time(),
        )
        document = {
            "slot": meta.slot,
            "savedAt": meta.saved_at,
            "state": state_to_dict(state),
        }
        # A failed write leaves the previous slot file intact
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            tmp_path.unlink(missing_ok=True)
            raise SaveLoadError(f"Unable to write save slot '{slot}': {exc}") from exc
        logger.info("Saved slot '%s' (%s @ %s)", slot, meta.story_bundle_id, meta.scene_id)
        return meta

    def load(self, slot: str) -> GameState:
        return state_from_dict(self._read(slot)["state"])

    def exists(self, slot: str) -> bool:
        return self._get_path(slot).exists()

    def delete(self, slot: str) -> bool:
        path = self._get_path(slot)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list_slots(self) -> list[SaveSlot]:
        slots = []
        for path in sorted(self.save_dir.glob("*.json")):
            try:
                document = self._read(path.stem)
            except SaveLoadError as exc:
                logger.warning("Skipping unreadable save %s: %s", path.name, exc)
                continue
            state = document["state"]
            slots.append(SaveSlot(
                slot=path.stem,
                story_bundle_id=state.get("storyBundleId", ""),
                scene_id=state.get("currentSceneId", ""),
                saved_at=document.get("savedAt", 0.0),
            ))
        return slots

    def _read(self, slot: str) -> dict[str, Any]:
        path = self._get_path(slot)
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        except FileNotFoundError as exc:
            raise SaveLoadError(f"Save slot '{slot}' does not exist") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise SaveLoadError(f"Unable to read save slot '{slot}': {exc}") from exc
        if not isinstance(document, dict) or not isinstance(document.get("state"), dict):
            raise SaveLoadError(f"Save slot '{slot}' is malformed")
        return document

    def _get_path(self, slot: str) -> Path:
        """Get file path for a slot."""
        if not _SLOT_RE.match(slot):
            raise SaveLoadError(f"Invalid slot name: {slot!r}")
        return self.save_dir / f"{slot}.json"
