"""
Rule modules - pluggable resolution of system-specific mechanics.

A RuleModule owns the dice, checks and combat of one rule system
("SRD5e", "Custom", ...). The engine hands it a RuleContext and gets
back a RuleResult; modules only PROPOSE effects, the caller applies
them.

The RuleModuleDispatcher holds the modules a bundle declared, keyed by
id and in registration order, and routes hooks and delegated
conditions to them.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Mapping, TYPE_CHECKING
import logging

from ..bundle.dsl import Condition, Effect, RuleHook
from ..errors import BundleValidationError, DiagnosticCode, DiagnosticSink, ValidationIssue
from .conditions import EvaluationContext
from .rng import RNG
from .state import GameState

if TYPE_CHECKING:
    from ..bundle.models import Action, RuleModuleRef, Scene, StoryBundle

logger = logging.getLogger(__name__)


class Outcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"


@dataclass
class RuleContext:
    """Everything a module may look at while resolving a hook."""
    state: GameState
    scene: Scene
    action: Action | None = None
    hook: RuleHook | None = None
    rng: RNG | None = None


@dataclass
class RuleResult:
    """
    What a module proposes.

    narrative: text appended to the turn's narrative
    effects:   changes for the caller to apply, in order
    outcome:   success / failure / neutral, for the UI
    data:      structured details (rolls, totals) for logs
    """
    narrative: str | None = None
    effects: list[Effect] = field(default_factory=list)
    outcome: Outcome | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> RuleResult:
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.narrative is None and not self.effects and self.outcome is None and not self.data


class RuleModule(ABC):
    """
    Abstract base class for rule modules.

    Subclasses set `id` and `system` and implement resolve(). Modules
    registered with a dispatcher may be shared between sessions, so
    they must keep no per-game state.
    """

    id: str = ""
    system: str = ""

    def __init__(self, config: Mapping[str, Any] | None = None):
        self.config = dict(config or {})

    def evaluate_condition(
        self, condition: Condition, state: GameState, context: EvaluationContext | None = None
    ) -> bool:
        """Decide a delegated condition. Modules that decide nothing fail closed."""
        return False

    @abstractmethod
    def resolve(self, context: RuleContext) -> RuleResult:
        """Resolve context.hook into a RuleResult. Unknown hook types return an empty result."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, system={self.system!r})"


RuleModuleFactory = Callable[..., RuleModule]


class RuleModuleDispatcher:
    """
    Registry of rule modules plus hook routing.

    Usage:
        dispatcher = RuleModuleDispatcher.for_bundle(bundle, BUILTIN_MODULES)
        result = dispatcher.resolve(hook, RuleContext(state, scene, rng=rng))
    """

    def __init__(self, modules: list[RuleModule] | None = None, system: str | None = None):
        self._modules: dict[str, RuleModule] = {}
        self.system = system
        for module in modules or []:
            self.register(module)

    @classmethod
    def for_bundle(cls, bundle: StoryBundle, catalog: Mapping[str, RuleModuleFactory]) -> RuleModuleDispatcher:
        """
        Instantiate every module the bundle declares.

        Raises BundleValidationError if a declared module is not in the catalog.
        """
        issues = [
            ValidationIssue(f"/ruleModules/{i}/id", f"Rule module '{ref.id}' ({ref.system}) is not available")
            for i, ref in enumerate(bundle.rule_modules)
            if ref.id not in catalog
        ]
        if issues:
            raise BundleValidationError(issues)

        dispatcher = cls(system=bundle.primary_system)
        for ref in bundle.rule_modules:
            dispatcher.register(_instantiate(catalog[ref.id], ref))
        return dispatcher

    def register(self, module: RuleModule):
        if module.id in self._modules:
            raise ValueError(f"Rule module '{module.id}' is already registered")
        self._modules[module.id] = module
        logger.debug("Registered rule module %r", module)

    def get(self, module_id: str) -> RuleModule | None:
        return self._modules.get(module_id)

    @property
    def modules(self) -> list[RuleModule]:
        return list(self._modules.values())

    def modules_for_system(self, system: str) -> list[RuleModule]:
        return [m for m in self._modules.values() if m.system == system]

    def __contains__(self, module_id: str) -> bool:
        return module_id in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    # =========================================================================
    # Condition delegation
    # =========================================================================

    def evaluate_condition(
        self,
        condition: Condition,
        state: GameState,
        context: EvaluationContext | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> bool:
        """
        Ask the first module of the declared system.

        No declared system or no module for it means false.
        """
        if self.system is None:
            return False
        candidates = self.modules_for_system(self.system)
        if not candidates:
            return False
        module = candidates[0]
        try:
            return bool(module.evaluate_condition(condition, state, context))
        except Exception as exc:
            sink = diagnostics if diagnostics is not None else DiagnosticSink(logger)
            sink.report(
                DiagnosticCode.MODULE_ERROR,
                f"Rule module '{module.id}' failed evaluating a {condition.type} condition: {exc}",
                module_id=module.id,
            )
            return False

    # =========================================================================
    # Hook resolution
    # =========================================================================

    def resolve(self, hook: RuleHook, context: RuleContext, diagnostics: DiagnosticSink | None = None) -> RuleResult:
        """
        Resolve a hook.

        A hook with a moduleId goes to that module only; an unregistered
        id is reported and resolves to an empty result. A hook without
        one is broadcast to every module in registration order and the
        results are merged.
        """
        sink = diagnostics if diagnostics is not None else DiagnosticSink(logger)
        if context.hook is not hook:
            context = replace(context, hook=hook)

        if hook.module_id:
            module = self._modules.get(hook.module_id)
            if module is None:
                sink.report(
                    DiagnosticCode.MODULE_NOT_REGISTERED,
                    f"Hook '{hook.type}' names unregistered rule module '{hook.module_id}'",
                    module_id=hook.module_id,
                    hook_type=hook.type,
                )
                return RuleResult.empty()
            return self._resolve_with(module, context, sink) or RuleResult.empty()

        results = []
        for module in self._modules.values():
            result = self._resolve_with(module, context, sink)
            if result is not None:
                results.append((module.id, result))
        return merge_results(results)

    def _resolve_with(self, module: RuleModule, context: RuleContext, sink: DiagnosticSink) -> RuleResult | None:
        try:
            result = module.resolve(context)
        except Exception as exc:
            sink.report(
                DiagnosticCode.MODULE_ERROR,
                f"Rule module '{module.id}' failed resolving '{context.hook.type}': {exc}",
                module_id=module.id,
                hook_type=context.hook.type,
            )
            return None
        return result if result is not None else RuleResult.empty()


def merge_results(results: list[tuple[str, RuleResult]]) -> RuleResult:
    """
    Merge broadcast results.

    Narratives are joined with newlines, effects concatenated in order,
    the first non-neutral outcome wins and data is keyed by module id.
    """
    narratives = [r.narrative for _, r in results if r.narrative]
    effects: list[Effect] = []
    outcome: Outcome | None = None
    data: dict[str, Any] = {}
    for module_id, result in results:
        effects.extend(result.effects)
        if result.outcome is not None and outcome in (None, Outcome.NEUTRAL):
            outcome = result.outcome
        if result.data:
            data[module_id] = result.data
    return RuleResult(
        narrative="\n".join(narratives) if narratives else None,
        effects=effects,
        outcome=outcome,
        data=data,
    )


def _instantiate(factory: RuleModuleFactory, ref: RuleModuleRef) -> RuleModule:
    module = factory(config=ref.config)
    if module.system != ref.system:
        logger.warning(
            "Rule module '%s' declares system '%s' but implements '%s'", ref.id, ref.system, module.system,
        )
    return module
