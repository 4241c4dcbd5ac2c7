"""
Condition / Effect DSL - declarative gates and mutations.

Conditions and effects are closed unions of frozen dataclasses.
Each variant knows its JSON tag ("flag", "setFlag", ...) and converts
to and from the bundle's camelCase JSON shape.

Key design decisions:
- Parsing rejects unknown tags and malformed fields with a JSON path
- Unknown extra fields are ignored (forward compatibility)
- Consumers dispatch with isinstance and finish with assert_never,
  so adding a variant without handling it is a type error
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

from ..errors import BundleFormatError


# =============================================================================
# Field helpers
# =============================================================================

def _require_mapping(data: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise BundleFormatError(path, f"expected an object, got {type(data).__name__}")
    return data


def _require_str(data: Mapping[str, Any], key: str, path: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise BundleFormatError(f"{path}/{key}", "expected a non-empty string")
    return value


def _optional_str(data: Mapping[str, Any], key: str, path: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BundleFormatError(f"{path}/{key}", "expected a string")
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_number(data: Mapping[str, Any], key: str, path: str) -> int | float:
    value = data.get(key)
    if not _is_number(value):
        raise BundleFormatError(f"{path}/{key}", "expected a number")
    return value


def _optional_number(data: Mapping[str, Any], key: str, path: str) -> int | float | None:
    if data.get(key) is None:
        return None
    return _require_number(data, key, path)


def _optional_count(data: Mapping[str, Any], key: str, path: str) -> int:
    value = data.get(key, 1)
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise BundleFormatError(f"{path}/{key}", "expected a non-negative integer")
    return value


def _optional_bool(data: Mapping[str, Any], key: str, path: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise BundleFormatError(f"{path}/{key}", "expected a boolean")
    return value


def _parse_enum(enum_cls: type[Enum], data: Mapping[str, Any], key: str, path: str, default=None):
    raw = data.get(key)
    if raw is None:
        if default is None:
            raise BundleFormatError(f"{path}/{key}", "operator is required")
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise BundleFormatError(f"{path}/{key}", f"unknown operator {raw!r} (expected one of: {allowed})")


def _strip_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# Conditions
# =============================================================================

class FlagOperator(Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    EXISTS = "exists"
    NOT_EXISTS = "notExists"


class StatOperator(Enum):
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    NEQ = "neq"


class InventoryOperator(Enum):
    HAS = "has"
    NOT_HAS = "notHas"
    COUNT_GTE = "countGte"
    COUNT_LTE = "countLte"


class LoreOperator(Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    HAS = "has"
    NOT_HAS = "notHas"


@dataclass(frozen=True)
class FlagCondition:
    """Compares a global story flag."""
    key: str
    operator: FlagOperator = FlagOperator.EQUALS
    value: bool = True
    type: ClassVar[str] = "flag"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "key": self.key, "operator": self.operator.value, "value": self.value}


@dataclass(frozen=True)
class StatCondition:
    """Compares a character stat (missing stats read as 0)."""
    key: str
    operator: StatOperator
    value: int | float
    type: ClassVar[str] = "stat"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "key": self.key, "operator": self.operator.value, "value": self.value}


@dataclass(frozen=True)
class InventoryCondition:
    """Compares the total held count of an item id."""
    key: str
    operator: InventoryOperator = InventoryOperator.HAS
    value: int = 1
    type: ClassVar[str] = "inventory"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "key": self.key, "operator": self.operator.value, "value": self.value}


@dataclass(frozen=True)
class ExpressionCondition:
    """Opaque expression handed to an injected predicate."""
    expr: str
    type: ClassVar[str] = "expression"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "expr": self.expr}


@dataclass(frozen=True)
class LoreCondition:
    """Queries the lore index by "entityType:id"."""
    key: str
    operator: LoreOperator = LoreOperator.HAS
    value: Any = None
    type: ClassVar[str] = "lore"

    def to_dict(self) -> dict[str, Any]:
        return _strip_none({
            "type": self.type, "key": self.key, "operator": self.operator.value, "value": self.value,
        })


Condition = Union[FlagCondition, StatCondition, InventoryCondition, ExpressionCondition, LoreCondition]


def parse_condition(data: Any, path: str = "/condition") -> Condition:
    """Parse a condition object from bundle JSON."""
    data = _require_mapping(data, path)
    cond_type = data.get("type")

    if cond_type == "flag":
        return FlagCondition(
            key=_require_str(data, "key", path),
            operator=_parse_enum(FlagOperator, data, "operator", path, FlagOperator.EQUALS),
            value=_optional_bool(data, "value", path, True),
        )
    if cond_type == "stat":
        return StatCondition(
            key=_require_str(data, "key", path),
            operator=_parse_enum(StatOperator, data, "operator", path),
            value=_require_number(data, "value", path),
        )
    if cond_type == "inventory":
        return InventoryCondition(
            key=_require_str(data, "key", path),
            operator=_parse_enum(InventoryOperator, data, "operator", path, InventoryOperator.HAS),
            value=_optional_count(data, "value", path),
        )
    if cond_type == "expression":
        return ExpressionCondition(expr=_require_str(data, "expr", path))
    if cond_type == "lore":
        return LoreCondition(
            key=_require_str(data, "key", path),
            operator=_parse_enum(LoreOperator, data, "operator", path, LoreOperator.HAS),
            value=data.get("value"),
        )
    raise BundleFormatError(f"{path}/type", f"unknown condition type {cond_type!r}")


def parse_optional_condition(data: Mapping[str, Any], key: str, path: str) -> Condition | None:
    if data.get(key) is None:
        return None
    return parse_condition(data[key], f"{path}/{key}")


# =============================================================================
# Items
# =============================================================================

@dataclass(frozen=True)
class Item:
    """An item definition, carried by addItem effects and inventory entries."""
    id: str
    name: str
    description: str | None = None
    tags: tuple[str, ...] = ()
    lore_item_id: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, path: str = "/item") -> Item:
        data = _require_mapping(data, path)
        item_id = _require_str(data, "id", path)
        return cls(
            id=item_id,
            name=_optional_str(data, "name", path) or item_id,
            description=_optional_str(data, "description", path),
            tags=tuple(data.get("tags") or ()),
            lore_item_id=_optional_str(data, "loreItemId", path),
            properties=dict(data.get("properties") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        result = _strip_none({
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "loreItemId": self.lore_item_id,
        })
        if self.tags:
            result["tags"] = list(self.tags)
        if self.properties:
            result["properties"] = dict(self.properties)
        return result


# =============================================================================
# Effects
# =============================================================================

@dataclass(frozen=True)
class SetFlag:
    key: str
    value: bool = True
    type: ClassVar[str] = "setFlag"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "key": self.key, "value": self.value}


@dataclass(frozen=True)
class ModifyStat:
    key: str
    delta: int | float
    min: int | float | None = None
    max: int | float | None = None
    type: ClassVar[str] = "modifyStat"

    def to_dict(self) -> dict[str, Any]:
        return _strip_none({
            "type": self.type, "key": self.key, "delta": self.delta, "min": self.min, "max": self.max,
        })


@dataclass(frozen=True)
class AddItem:
    item: Item
    count: int = 1
    type: ClassVar[str] = "addItem"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "item": self.item.to_dict(), "count": self.count}


@dataclass(frozen=True)
class RemoveItem:
    item_id: str
    count: int = 1
    type: ClassVar[str] = "removeItem"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "itemId": self.item_id, "count": self.count}


@dataclass(frozen=True)
class SetVar:
    key: str
    value: Any
    type: ClassVar[str] = "setVar"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "key": self.key, "value": self.value}


@dataclass(frozen=True)
class ModifyVar:
    key: str
    delta: Any
    type: ClassVar[str] = "modifyVar"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "key": self.key, "delta": self.delta}


@dataclass(frozen=True)
class Teleport:
    target_scene: str
    target_location_id: str | None = None
    type: ClassVar[str] = "teleport"

    def to_dict(self) -> dict[str, Any]:
        return _strip_none({
            "type": self.type, "targetScene": self.target_scene, "targetLocationId": self.target_location_id,
        })


@dataclass(frozen=True)
class SetReputation:
    faction_id: str
    value: int | float
    type: ClassVar[str] = "setReputation"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "factionId": self.faction_id, "value": self.value}


Effect = Union[SetFlag, ModifyStat, AddItem, RemoveItem, SetVar, ModifyVar, Teleport, SetReputation]


def parse_effect(data: Any, path: str = "/effect") -> Effect:
    """Parse an effect object from bundle JSON."""
    data = _require_mapping(data, path)
    effect_type = data.get("type")

    if effect_type == "setFlag":
        return SetFlag(key=_require_str(data, "key", path), value=_optional_bool(data, "value", path, True))
    if effect_type == "modifyStat":
        effect = ModifyStat(
            key=_require_str(data, "key", path),
            delta=_require_number(data, "delta", path),
            min=_optional_number(data, "min", path),
            max=_optional_number(data, "max", path),
        )
        if effect.min is not None and effect.max is not None and effect.min > effect.max:
            raise BundleFormatError(path, "min must not exceed max")
        return effect
    if effect_type == "addItem":
        return AddItem(item=Item.from_dict(data.get("item"), f"{path}/item"), count=_optional_count(data, "count", path))
    if effect_type == "removeItem":
        return RemoveItem(item_id=_require_str(data, "itemId", path), count=_optional_count(data, "count", path))
    if effect_type == "setVar":
        if "value" not in data:
            raise BundleFormatError(f"{path}/value", "value is required")
        return SetVar(key=_require_str(data, "key", path), value=data["value"])
    if effect_type == "modifyVar":
        if "delta" not in data:
            raise BundleFormatError(f"{path}/delta", "delta is required")
        return ModifyVar(key=_require_str(data, "key", path), delta=data["delta"])
    if effect_type == "teleport":
        return Teleport(
            target_scene=_require_str(data, "targetScene", path),
            target_location_id=_optional_str(data, "targetLocationId", path),
        )
    if effect_type == "setReputation":
        return SetReputation(
            faction_id=_require_str(data, "factionId", path),
            value=_require_number(data, "value", path),
        )
    raise BundleFormatError(f"{path}/type", f"unknown effect type {effect_type!r}")


def parse_effects(data: Mapping[str, Any], key: str, path: str) -> tuple[Effect, ...]:
    raw = data.get(key) or []
    if not isinstance(raw, list):
        raise BundleFormatError(f"{path}/{key}", "expected a list")
    return tuple(parse_effect(e, f"{path}/{key}/{i}") for i, e in enumerate(raw))


def effect_payload(effect: Effect) -> dict[str, Any]:
    """Effect fields without the type tag (used for history records)."""
    payload = effect.to_dict()
    payload.pop("type", None)
    return payload


# =============================================================================
# Rule hooks
# =============================================================================

@dataclass(frozen=True)
class RuleHook:
    """
    A typed request for rule-module resolution.

    Examples:
    - RuleHook(type="skillCheck", payload={"stat": "str", "dc": 12})
    - RuleHook(type="attackRoll", module_id="rules.d20", payload={"bonus": 4, "ac": 13})
    """
    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    module_id: str | None = None

    @classmethod
    def from_dict(cls, data: Any, path: str = "/hook") -> RuleHook:
        data = _require_mapping(data, path)
        payload = data.get("payload") or {}
        if not isinstance(payload, Mapping):
            raise BundleFormatError(f"{path}/payload", "expected an object")
        return cls(
            type=_require_str(data, "type", path),
            payload=dict(payload),
            module_id=_optional_str(data, "moduleId", path),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type}
        if self.module_id:
            result["moduleId"] = self.module_id
        if self.payload:
            result["payload"] = dict(self.payload)
        return result


def parse_hooks(data: Mapping[str, Any], key: str, path: str) -> tuple[RuleHook, ...]:
    raw = data.get(key) or []
    if not isinstance(raw, list):
        raise BundleFormatError(f"{path}/{key}", "expected a list")
    return tuple(RuleHook.from_dict(h, f"{path}/{key}/{i}") for i, h in enumerate(raw))
