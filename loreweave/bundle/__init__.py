"""Story bundle schema - read-only content consumed by the engine."""

from .dsl import (
    Condition,
    FlagCondition,
    StatCondition,
    InventoryCondition,
    ExpressionCondition,
    LoreCondition,
    Effect,
    SetFlag,
    ModifyStat,
    AddItem,
    RemoveItem,
    SetVar,
    ModifyVar,
    Teleport,
    SetReputation,
    Item,
    RuleHook,
    parse_condition,
    parse_effect,
)
from .models import StoryBundle, Scene, Exit, Action, Location, Region, RuleModuleRef
from .lore import LoreBundle, LoreIndex
from .validation import validate_bundle, ValidationResult
from .loader import load_story_bundle, load_lore_bundle, parse_story_bundle

__all__ = [
    "Condition",
    "FlagCondition",
    "StatCondition",
    "InventoryCondition",
    "ExpressionCondition",
    "LoreCondition",
    "Effect",
    "SetFlag",
    "ModifyStat",
    "AddItem",
    "RemoveItem",
    "SetVar",
    "ModifyVar",
    "Teleport",
    "SetReputation",
    "Item",
    "RuleHook",
    "parse_condition",
    "parse_effect",
    "StoryBundle",
    "Scene",
    "Exit",
    "Action",
    "Location",
    "Region",
    "RuleModuleRef",
    "LoreBundle",
    "LoreIndex",
    "validate_bundle",
    "ValidationResult",
    "load_story_bundle",
    "load_lore_bundle",
    "parse_story_bundle",
]
