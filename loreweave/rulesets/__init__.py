"""
Rulesets - built-in rule modules.

BUILTIN_MODULES is the default catalog: rule module id -> factory.
Bundles declare which of them they expect in "ruleModules".
"""

from .core import CoreRules
from .d20 import D20Rules, ability_modifier

BUILTIN_MODULES = {
    CoreRules.id: CoreRules,
    D20Rules.id: D20Rules,
}

__all__ = [
    "BUILTIN_MODULES",
    "CoreRules",
    "D20Rules",
    "ability_modifier",
]
