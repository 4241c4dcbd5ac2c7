"""
Engine errors and diagnostics.

Two families:
- Exceptions, raised for load-time defects and fatal runtime faults,
  or carried inside a failed NavigationResult for gating failures.
- Diagnostics, for recoverable problems that degrade to a safe default
  (a closed condition, an empty rule result, a no-op effect).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import logging


class LoreweaveError(Exception):
    """Base class for all engine errors."""


# =============================================================================
# Bundle (load-time) errors
# =============================================================================

class BundleError(LoreweaveError):
    """Base class for bundle loading problems."""


class BundleLoadError(BundleError):
    """Raised when a bundle file is missing or is not valid JSON."""


class BundleFormatError(BundleError):
    """Raised when bundle content is structurally malformed."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class Severity(Enum):
    """Validation issue severity."""
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    """A single structural or referential defect found in a bundle."""
    path: str  # JSON-pointer-ish, e.g. "/story/scenes/3/exits/0/targetScene"
    message: str
    severity: Severity = Severity.ERROR

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.path}: {self.message}"


class BundleValidationError(BundleError):
    """Raised when a bundle has at least one error-severity issue."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        errors = [i for i in issues if i.is_error]
        super().__init__(f"Bundle validation failed with {len(errors)} error(s)")


# =============================================================================
# Runtime errors
# =============================================================================

class SceneNotFound(LoreweaveError):
    """
    The state points at a scene the loaded bundle does not contain.

    A validated bundle never triggers this; it indicates a corrupt save
    or a bundle/save mismatch.
    """

    def __init__(self, scene_id: str):
        self.scene_id = scene_id
        super().__init__(f"Scene '{scene_id}' not found in bundle")


class NavigationError(LoreweaveError):
    """A player choice was rejected at the gating step."""
    error_code = "NAVIGATION_ERROR"


class ActionUnavailable(NavigationError):
    """The action is unknown or its condition is currently false."""
    error_code = "ACTION_UNAVAILABLE"

    def __init__(self, scene_id: str, action_id: str):
        self.scene_id = scene_id
        self.action_id = action_id
        super().__init__(f"Action '{action_id}' is not available in scene '{scene_id}'")


class ExitUnavailable(NavigationError):
    """The exit is unknown or its condition is currently false."""
    error_code = "EXIT_UNAVAILABLE"

    def __init__(self, scene_id: str, exit_ref: Any):
        self.scene_id = scene_id
        self.exit_ref = exit_ref
        super().__init__(f"Exit {exit_ref!r} is not available in scene '{scene_id}'")


class DiceNotationError(ValueError):
    """Raised for dice expressions the RNG cannot parse."""


class SaveLoadError(LoreweaveError):
    """Raised when a save slot cannot be written or read."""


# =============================================================================
# Diagnostics
# =============================================================================

class DiagnosticCode(Enum):
    """Recoverable problem categories."""
    MODULE_NOT_REGISTERED = "MODULE_NOT_REGISTERED"
    MODULE_ERROR = "MODULE_ERROR"
    EXPRESSION_EVALUATION_ERROR = "EXPRESSION_EVALUATION_ERROR"
    LORE_UNAVAILABLE = "LORE_UNAVAILABLE"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    UNKNOWN_SCENE = "UNKNOWN_SCENE"


@dataclass(frozen=True)
class Diagnostic:
    """A reported, non-fatal problem."""
    code: DiagnosticCode
    message: str
    data: dict[str, Any] = field(default_factory=dict)


class DiagnosticSink:
    """
    Collects diagnostics and mirrors them to a logger.

    Passed down through one engine call so the caller can report
    everything that degraded along the way.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.diagnostics: list[Diagnostic] = []
        self._logger = logger or logging.getLogger(__name__)

    def report(self, code: DiagnosticCode, message: str, **data: Any) -> Diagnostic:
        diagnostic = Diagnostic(code=code, message=message, data=data)
        self.diagnostics.append(diagnostic)
        self._logger.warning("%s: %s", code.value, message)
        return diagnostic

    def extend(self, diagnostics: list[Diagnostic]):
        self.diagnostics.extend(diagnostics)

    def __len__(self) -> int:
        return len(self.diagnostics)

    def codes(self) -> list[DiagnosticCode]:
        return [d.code for d in self.diagnostics]
