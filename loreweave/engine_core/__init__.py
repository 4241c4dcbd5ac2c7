"""
Engine Core - the Narrative State Engine.

The engine is the runtime that:
1. Evaluates conditions to decide which choices are visible
2. Applies effects to the save state, in order
3. Routes rule hooks to pluggable rule modules
4. Navigates the story graph one choice at a time
"""

from .state import GameState, Character, InventoryEntry, HistoryEvent, HistoryEventType, VarKind
from .rng import RNG, SeededRNG, ScriptedRNG
from .conditions import ConditionEvaluator, EvaluationContext
from .effects import EffectApplier, apply_effects
from .rules import RuleModule, RuleModuleDispatcher, RuleContext, RuleResult, Outcome
from .result import NavigationResult, SceneView
from .navigator import SceneNavigator, NavigatorPhase
from .serialization import state_to_dict, state_from_dict, dumps_state, loads_state

__all__ = [
    "GameState",
    "Character",
    "InventoryEntry",
    "HistoryEvent",
    "HistoryEventType",
    "VarKind",
    "RNG",
    "SeededRNG",
    "ScriptedRNG",
    "ConditionEvaluator",
    "EvaluationContext",
    "EffectApplier",
    "apply_effects",
    "RuleModule",
    "RuleModuleDispatcher",
    "RuleContext",
    "RuleResult",
    "Outcome",
    "NavigationResult",
    "SceneView",
    "SceneNavigator",
    "NavigatorPhase",
    "state_to_dict",
    "state_from_dict",
    "dumps_state",
    "loads_state",
]
