"""
Lore bundles and the lore index.

Lore is non-executable knowledge (races, factions, deities, traits,
abstract places, items, history). It informs narrative and rules but
never mutates state. Conditions query it by "entityType:id", e.g.
"faction:ironveil" or "race:dwarf".
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol

from ..errors import BundleFormatError
from .dsl import _optional_str, _require_mapping, _require_str, _strip_none


# JSON collection key -> entity type used in lookup keys
ENTITY_COLLECTIONS = {
    "races": "race",
    "factions": "faction",
    "deities": "deity",
    "traits": "trait",
    "locations": "location",
    "items": "item",
    "history": "event",
}


@dataclass(frozen=True)
class LoreBundle:
    """A versioned collection of lore entities, kept as plain mappings."""
    id: str
    name: str
    version: str
    description: str | None = None
    entities: dict[str, tuple[dict[str, Any], ...]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> LoreBundle:
        data = _require_mapping(data, "/")
        entities: dict[str, tuple[dict[str, Any], ...]] = {}
        for collection in ENTITY_COLLECTIONS:
            raw = data.get(collection) or []
            if not isinstance(raw, list):
                raise BundleFormatError(f"/{collection}", "expected a list")
            records = []
            for i, record in enumerate(raw):
                record = _require_mapping(record, f"/{collection}/{i}")
                _require_str(record, "id", f"/{collection}/{i}")
                records.append(dict(record))
            entities[collection] = tuple(records)
        return cls(
            id=_require_str(data, "id", ""),
            name=_require_str(data, "name", ""),
            version=_require_str(data, "version", ""),
            description=_optional_str(data, "description", ""),
            entities=entities,
        )

    def to_dict(self) -> dict[str, Any]:
        result = _strip_none({
            "id": self.id, "name": self.name, "version": self.version, "description": self.description,
        })
        for collection, records in self.entities.items():
            if records:
                result[collection] = [dict(r) for r in records]
        return result


class LoreLookup(Protocol):
    """What the condition evaluator needs from lore."""

    def lookup(self, key: str) -> Mapping[str, Any] | None: ...

    def __len__(self) -> int: ...


class LoreIndex:
    """
    Flat "entityType:id" index over one or more lore bundles.

    Later bundles shadow earlier ones for the same key.
    """

    def __init__(self, bundles: Iterable[LoreBundle] = ()):
        self.bundle_ids: list[str] = []
        self._entities: dict[str, Mapping[str, Any]] = {}
        for bundle in bundles:
            self.add_bundle(bundle)

    def add_bundle(self, bundle: LoreBundle):
        self.bundle_ids.append(bundle.id)
        for collection, records in bundle.entities.items():
            entity_type = ENTITY_COLLECTIONS[collection]
            for record in records:
                self._entities[f"{entity_type}:{record['id']}"] = record

    def lookup(self, key: str) -> Mapping[str, Any] | None:
        return self._entities.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def keys(self) -> list[str]:
        return sorted(self._entities)
