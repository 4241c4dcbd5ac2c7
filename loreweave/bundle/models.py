"""
Story Bundle - read-only content package consumed by the engine.

A StoryBundle holds:
- World definition (regions, locations)
- Story graph (scenes, start scene)
- Declared rule-module references

Bundles are loaded once per session and never mutated. All parsing
goes through from_dict(); to_dict() emits the same camelCase JSON.
Fields the engine does not interpret (assets, ambience, editor notes)
are ignored on load.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Union

from ..errors import BundleFormatError
from .dsl import (
    Condition,
    Effect,
    RuleHook,
    _optional_number,
    _optional_str,
    _require_mapping,
    _require_str,
    _strip_none,
    parse_effects,
    parse_hooks,
    parse_optional_condition,
)


def _list(data: Mapping[str, Any], key: str, path: str) -> list[Any]:
    raw = data.get(key) or []
    if not isinstance(raw, list):
        raise BundleFormatError(f"{path}/{key}", "expected a list")
    return raw


def _str_tuple(data: Mapping[str, Any], key: str, path: str) -> tuple[str, ...]:
    raw = _list(data, key, path)
    for i, value in enumerate(raw):
        if not isinstance(value, str):
            raise BundleFormatError(f"{path}/{key}/{i}", "expected a string")
    return tuple(raw)


# =============================================================================
# Narrative text
# =============================================================================

@dataclass(frozen=True)
class LocalizedText:
    locale: str
    text: str


@dataclass(frozen=True)
class TextVariant:
    """A weighted, optionally gated alternative text."""
    text: str
    weight: float = 1.0
    condition: Condition | None = None


NarrativeText = Union[str, tuple[LocalizedText, ...], tuple[TextVariant, ...]]


def parse_narrative_text(raw: Any, path: str) -> NarrativeText:
    """Parse a string, a list of {locale, text} or a list of {text, weight?, condition?}."""
    if isinstance(raw, str):
        return raw
    if not isinstance(raw, list) or not raw:
        raise BundleFormatError(path, "expected a string or a non-empty list")

    if all(isinstance(entry, Mapping) and "locale" in entry for entry in raw):
        return tuple(
            LocalizedText(
                locale=_require_str(entry, "locale", f"{path}/{i}"),
                text=_require_str(entry, "text", f"{path}/{i}"),
            )
            for i, entry in enumerate(raw)
        )

    variants = []
    for i, entry in enumerate(raw):
        entry_path = f"{path}/{i}"
        entry = _require_mapping(entry, entry_path)
        weight = _optional_number(entry, "weight", entry_path)
        if weight is not None and weight < 0:
            raise BundleFormatError(f"{entry_path}/weight", "weight must not be negative")
        variants.append(TextVariant(
            text=_require_str(entry, "text", entry_path),
            weight=1.0 if weight is None else weight,
            condition=parse_optional_condition(entry, "condition", entry_path),
        ))
    return tuple(variants)


def narrative_text_to_json(text: NarrativeText) -> Any:
    if isinstance(text, str):
        return text
    result = []
    for entry in text:
        if isinstance(entry, LocalizedText):
            result.append({"locale": entry.locale, "text": entry.text})
        else:
            variant: dict[str, Any] = {"text": entry.text, "weight": entry.weight}
            if entry.condition is not None:
                variant["condition"] = entry.condition.to_dict()
            result.append(variant)
    return result


@dataclass(frozen=True)
class LoreRef:
    """Reference from a scene to a lore entity (non-executable)."""
    type: str
    id: str
    note: str | None = None

    @property
    def key(self) -> str:
        return f"{self.type}:{self.id}"


@dataclass(frozen=True)
class NarrativeBlock:
    text: NarrativeText
    lore_refs: tuple[LoreRef, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, path: str) -> NarrativeBlock:
        if isinstance(data, str):
            return cls(text=data)
        data = _require_mapping(data, path)
        if "text" not in data:
            raise BundleFormatError(f"{path}/text", "narrative text is required")
        refs = tuple(
            LoreRef(
                type=_require_str(ref, "type", f"{path}/loreRefs/{i}"),
                id=_require_str(ref, "id", f"{path}/loreRefs/{i}"),
                note=_optional_str(ref, "note", f"{path}/loreRefs/{i}"),
            )
            for i, ref in enumerate(_list(data, "loreRefs", path))
        )
        return cls(text=parse_narrative_text(data["text"], f"{path}/text"), lore_refs=refs)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"text": narrative_text_to_json(self.text)}
        if self.lore_refs:
            result["loreRefs"] = [_strip_none({"type": r.type, "id": r.id, "note": r.note}) for r in self.lore_refs]
        return result


# =============================================================================
# Scene graph
# =============================================================================

class ActionCategory(Enum):
    TALK = "talk"
    SEARCH = "search"
    USE = "use"
    COMBAT = "combat"
    MOVE = "move"
    OTHER = "other"


@dataclass(frozen=True)
class Exit:
    """Navigation edge to another scene."""
    label: str
    target_scene: str
    condition: Condition | None = None
    travel_text: NarrativeText | None = None
    id: str | None = None

    @classmethod
    def from_dict(cls, data: Any, path: str) -> Exit:
        data = _require_mapping(data, path)
        travel = data.get("travelText")
        return cls(
            label=_require_str(data, "label", path),
            target_scene=_require_str(data, "targetScene", path),
            condition=parse_optional_condition(data, "condition", path),
            travel_text=None if travel is None else parse_narrative_text(travel, f"{path}/travelText"),
            id=_optional_str(data, "id", path),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"label": self.label, "targetScene": self.target_scene}
        if self.id:
            result["id"] = self.id
        if self.condition is not None:
            result["condition"] = self.condition.to_dict()
        if self.travel_text is not None:
            result["travelText"] = narrative_text_to_json(self.travel_text)
        return result


@dataclass(frozen=True)
class Action:
    """A player-triggerable choice with effects and optional rule hooks."""
    id: str
    label: str
    condition: Condition | None = None
    effects: tuple[Effect, ...] = ()
    rule_hooks: tuple[RuleHook, ...] = ()
    category: ActionCategory | None = None

    @classmethod
    def from_dict(cls, data: Any, path: str) -> Action:
        data = _require_mapping(data, path)
        category = data.get("category")
        try:
            parsed_category = ActionCategory(category) if category is not None else None
        except ValueError:
            raise BundleFormatError(f"{path}/category", f"unknown action category {category!r}")
        return cls(
            id=_require_str(data, "id", path),
            label=_require_str(data, "label", path),
            condition=parse_optional_condition(data, "condition", path),
            effects=parse_effects(data, "effects", path),
            rule_hooks=parse_hooks(data, "ruleHooks", path),
            category=parsed_category,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "label": self.label}
        if self.condition is not None:
            result["condition"] = self.condition.to_dict()
        if self.effects:
            result["effects"] = [e.to_dict() for e in self.effects]
        if self.rule_hooks:
            result["ruleHooks"] = [h.to_dict() for h in self.rule_hooks]
        if self.category is not None:
            result["category"] = self.category.value
        return result


@dataclass(frozen=True)
class Scene:
    """A node of the story graph."""
    id: str
    narrative: NarrativeBlock
    title: str | None = None
    exits: tuple[Exit, ...] = ()
    actions: tuple[Action, ...] = ()
    entry_rules: tuple[RuleHook, ...] = ()
    exit_rules: tuple[RuleHook, ...] = ()
    tags: tuple[str, ...] = ()
    location_id: str | None = None

    @classmethod
    def from_dict(cls, data: Any, path: str) -> Scene:
        data = _require_mapping(data, path)
        if "narrative" not in data:
            raise BundleFormatError(f"{path}/narrative", "narrative is required")
        return cls(
            id=_require_str(data, "id", path),
            narrative=NarrativeBlock.from_dict(data["narrative"], f"{path}/narrative"),
            title=_optional_str(data, "title", path),
            exits=tuple(Exit.from_dict(e, f"{path}/exits/{i}") for i, e in enumerate(_list(data, "exits", path))),
            actions=tuple(
                Action.from_dict(a, f"{path}/actions/{i}") for i, a in enumerate(_list(data, "actions", path))
            ),
            entry_rules=parse_hooks(data, "entryRules", path),
            exit_rules=parse_hooks(data, "exitRules", path),
            tags=_str_tuple(data, "tags", path),
            location_id=_optional_str(data, "locationId", path),
        )

    def get_action(self, action_id: str) -> Action | None:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "narrative": self.narrative.to_dict()}
        if self.title:
            result["title"] = self.title
        if self.exits:
            result["exits"] = [e.to_dict() for e in self.exits]
        if self.actions:
            result["actions"] = [a.to_dict() for a in self.actions]
        if self.entry_rules:
            result["entryRules"] = [h.to_dict() for h in self.entry_rules]
        if self.exit_rules:
            result["exitRules"] = [h.to_dict() for h in self.exit_rules]
        if self.tags:
            result["tags"] = list(self.tags)
        if self.location_id:
            result["locationId"] = self.location_id
        return result


@dataclass(frozen=True)
class StoryGraph:
    scenes: tuple[Scene, ...]
    start_scene: str

    @classmethod
    def from_dict(cls, data: Any, path: str) -> StoryGraph:
        data = _require_mapping(data, path)
        return cls(
            scenes=tuple(Scene.from_dict(s, f"{path}/scenes/{i}") for i, s in enumerate(_list(data, "scenes", path))),
            start_scene=_require_str(data, "startScene", path),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"scenes": [s.to_dict() for s in self.scenes], "startScene": self.start_scene}


# =============================================================================
# World & spatial model
# =============================================================================

class LocationType(Enum):
    TOWN = "town"
    DUNGEON = "dungeon"
    WILDERNESS = "wilderness"
    INTERIOR = "interior"
    OTHER = "other"


@dataclass(frozen=True)
class Location:
    """A runtime-navigable place composed of scenes."""
    id: str
    name: str
    entry_scene: str
    type: LocationType = LocationType.OTHER
    description: str | None = None
    scene_ids: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, path: str) -> Location:
        data = _require_mapping(data, path)
        raw_type = data.get("type", "other")
        try:
            location_type = LocationType(raw_type)
        except ValueError:
            raise BundleFormatError(f"{path}/type", f"unknown location type {raw_type!r}")
        return cls(
            id=_require_str(data, "id", path),
            name=_require_str(data, "name", path),
            entry_scene=_require_str(data, "entryScene", path),
            type=location_type,
            description=_optional_str(data, "description", path),
            scene_ids=_str_tuple(data, "sceneIds", path),
            tags=_str_tuple(data, "tags", path),
        )

    def to_dict(self) -> dict[str, Any]:
        result = _strip_none({
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "entryScene": self.entry_scene,
            "description": self.description,
        })
        if self.scene_ids:
            result["sceneIds"] = list(self.scene_ids)
        if self.tags:
            result["tags"] = list(self.tags)
        return result


@dataclass(frozen=True)
class Region:
    id: str
    name: str
    description: str | None = None
    location_ids: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any, path: str) -> Region:
        data = _require_mapping(data, path)
        return cls(
            id=_require_str(data, "id", path),
            name=_require_str(data, "name", path),
            description=_optional_str(data, "description", path),
            location_ids=_str_tuple(data, "locationIds", path),
        )

    def to_dict(self) -> dict[str, Any]:
        result = _strip_none({"id": self.id, "name": self.name, "description": self.description})
        if self.location_ids:
            result["locationIds"] = list(self.location_ids)
        return result


@dataclass(frozen=True)
class WorldDefinition:
    locations: tuple[Location, ...] = ()
    regions: tuple[Region, ...] = ()
    id: str | None = None
    name: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Any, path: str) -> WorldDefinition:
        data = _require_mapping(data, path)
        return cls(
            locations=tuple(
                Location.from_dict(loc, f"{path}/locations/{i}") for i, loc in enumerate(_list(data, "locations", path))
            ),
            regions=tuple(
                Region.from_dict(r, f"{path}/regions/{i}") for i, r in enumerate(_list(data, "regions", path))
            ),
            id=_optional_str(data, "id", path),
            name=_optional_str(data, "name", path),
            description=_optional_str(data, "description", path),
        )

    def to_dict(self) -> dict[str, Any]:
        result = _strip_none({"id": self.id, "name": self.name, "description": self.description})
        result["locations"] = [loc.to_dict() for loc in self.locations]
        if self.regions:
            result["regions"] = [r.to_dict() for r in self.regions]
        return result


# =============================================================================
# Bundle
# =============================================================================

@dataclass(frozen=True)
class RuleModuleRef:
    """A rule module the story expects, e.g. {"id": "rules.core", "system": "Custom"}."""
    id: str
    system: str
    version: str | None = None
    config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, path: str) -> RuleModuleRef:
        data = _require_mapping(data, path)
        config = data.get("config") or {}
        if not isinstance(config, Mapping):
            raise BundleFormatError(f"{path}/config", "expected an object")
        return cls(
            id=_require_str(data, "id", path),
            system=_require_str(data, "system", path),
            version=_optional_str(data, "version", path),
            config=dict(config),
        )

    def to_dict(self) -> dict[str, Any]:
        result = _strip_none({"id": self.id, "system": self.system, "version": self.version})
        if self.config:
            result["config"] = dict(self.config)
        return result


@dataclass(frozen=True)
class StoryBundle:
    """
    Versioned, read-only content package.

    Lookups by id are indexed once at construction time.
    """
    id: str
    name: str
    version: str
    world: WorldDefinition
    story: StoryGraph
    rule_modules: tuple[RuleModuleRef, ...] = ()
    schema_version: str | None = None
    description: str | None = None
    lore_refs: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        scenes: dict[str, Scene] = {}
        for scene in self.story.scenes:
            scenes.setdefault(scene.id, scene)
        object.__setattr__(self, "_scenes", scenes)
        object.__setattr__(self, "_locations", {loc.id: loc for loc in self.world.locations})

    @classmethod
    def from_dict(cls, data: Any) -> StoryBundle:
        path = ""
        data = _require_mapping(data, "/")
        for key in ("world", "story"):
            if key not in data:
                raise BundleFormatError(f"/{key}", f"{key} is required")
        lore_refs = []
        for i, ref in enumerate(_list(data, "loreRefs", path)):
            if isinstance(ref, Mapping):
                lore_refs.append(_require_str(ref, "id", f"/loreRefs/{i}"))
            elif isinstance(ref, str):
                lore_refs.append(ref)
            else:
                raise BundleFormatError(f"/loreRefs/{i}", "expected a string or an object with an id")
        metadata = data.get("metadata") or {}
        return cls(
            id=_require_str(data, "id", path),
            name=_require_str(data, "name", path),
            version=_require_str(data, "version", path),
            world=WorldDefinition.from_dict(data["world"], "/world"),
            story=StoryGraph.from_dict(data["story"], "/story"),
            rule_modules=tuple(
                RuleModuleRef.from_dict(r, f"/ruleModules/{i}") for i, r in enumerate(_list(data, "ruleModules", path))
            ),
            schema_version=_optional_str(data, "schemaVersion", path),
            description=_optional_str(data, "description", path),
            lore_refs=tuple(lore_refs),
            metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        )

    def to_dict(self) -> dict[str, Any]:
        result = _strip_none({
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "schemaVersion": self.schema_version,
            "description": self.description,
        })
        result["world"] = self.world.to_dict()
        result["story"] = self.story.to_dict()
        result["ruleModules"] = [r.to_dict() for r in self.rule_modules]
        if self.lore_refs:
            result["loreRefs"] = [{"id": ref} for ref in self.lore_refs]
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        return result

    @property
    def primary_system(self) -> str | None:
        """System of the first declared rule module."""
        return self.rule_modules[0].system if self.rule_modules else None

    def get_scene(self, scene_id: str) -> Scene | None:
        return self._scenes.get(scene_id)

    def has_scene(self, scene_id: str) -> bool:
        return scene_id in self._scenes

    def get_location(self, location_id: str) -> Location | None:
        return self._locations.get(location_id)

    def location_for_scene(self, scene_id: str) -> str | None:
        """The scene's own locationId, else the first location that lists or enters it."""
        scene = self.get_scene(scene_id)
        if scene is not None and scene.location_id:
            return scene.location_id
        for location in self.world.locations:
            if scene_id in location.scene_ids or location.entry_scene == scene_id:
                return location.id
        return None

    @property
    def scene_ids(self) -> set[str]:
        return set(self._scenes)
