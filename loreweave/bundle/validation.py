"""
Bundle Validation - referential integrity checks for story bundles.

Structural problems are caught while parsing (BundleFormatError).
This module checks that:
1. Ids are unique (scenes, locations, actions within a scene)
2. Every scene reference resolves (start scene, exits, teleports, locations)
3. Declared rule modules can be instantiated
4. Hooks name declared modules (warning)
5. Every scene is reachable from the start scene (warning)
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Mapping

from ..errors import BundleValidationError, Severity, ValidationIssue
from .dsl import Effect, RuleHook, Teleport
from .models import Scene, StoryBundle


@dataclass
class ValidationResult:
    """Result of validation, with all issues found."""
    issues: list[ValidationIssue]

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def raise_for_errors(self):
        if not self.valid:
            raise BundleValidationError(self.issues)


def validate_bundle(bundle: StoryBundle, catalog: Mapping[str, object] | None = None) -> ValidationResult:
    """
    Validate a parsed story bundle.

    If a module catalog is given, every declared rule module must be
    present in it. Only error-severity issues make the result invalid.
    """
    issues: list[ValidationIssue] = []

    def error(path: str, message: str):
        issues.append(ValidationIssue(path, message))

    def warn(path: str, message: str):
        issues.append(ValidationIssue(path, message, Severity.WARNING))

    scene_ids: set[str] = set()
    for i, scene in enumerate(bundle.story.scenes):
        if scene.id in scene_ids:
            error(f"/story/scenes/{i}/id", f"Duplicate scene id '{scene.id}'")
        scene_ids.add(scene.id)

    location_ids: set[str] = set()
    for i, location in enumerate(bundle.world.locations):
        if location.id in location_ids:
            error(f"/world/locations/{i}/id", f"Duplicate location id '{location.id}'")
        location_ids.add(location.id)

    if not bundle.story.scenes:
        warn("/story/scenes", "No scenes defined - bundle may be incomplete")
    if not bundle.world.locations:
        warn("/world/locations", "No locations defined")

    if bundle.story.start_scene not in scene_ids:
        error("/story/startScene", f"Start scene '{bundle.story.start_scene}' does not exist")

    # World references
    for i, location in enumerate(bundle.world.locations):
        path = f"/world/locations/{i}"
        if location.entry_scene not in scene_ids:
            error(f"{path}/entryScene", f"Location '{location.id}' entry scene '{location.entry_scene}' does not exist")
        for j, scene_id in enumerate(location.scene_ids):
            if scene_id not in scene_ids:
                error(f"{path}/sceneIds/{j}", f"Location '{location.id}' lists unknown scene '{scene_id}'")

    for i, region in enumerate(bundle.world.regions):
        for j, location_id in enumerate(region.location_ids):
            if location_id not in location_ids:
                error(
                    f"/world/regions/{i}/locationIds/{j}",
                    f"Region '{region.id}' lists unknown location '{location_id}'",
                )

    # Rule modules
    declared_modules = {ref.id for ref in bundle.rule_modules}
    seen_modules: set[str] = set()
    for i, ref in enumerate(bundle.rule_modules):
        if ref.id in seen_modules:
            error(f"/ruleModules/{i}/id", f"Duplicate rule module '{ref.id}'")
        seen_modules.add(ref.id)
        if catalog is not None and ref.id not in catalog:
            error(f"/ruleModules/{i}/id", f"Rule module '{ref.id}' ({ref.system}) is not available")

    # Scenes
    for i, scene in enumerate(bundle.story.scenes):
        issues.extend(_validate_scene(scene, f"/story/scenes/{i}", scene_ids, location_ids, declared_modules))

    # Reachability
    for scene_id in sorted(scene_ids - _reachable_scenes(bundle)):
        warn("/story/scenes", f"Scene '{scene_id}' is not reachable from the start scene")

    return ValidationResult(issues=issues)


def _validate_scene(
    scene: Scene,
    path: str,
    scene_ids: set[str],
    location_ids: set[str],
    declared_modules: set[str],
) -> list[ValidationIssue]:
    """Validate references held by a single scene."""
    issues = []

    if scene.location_id and scene.location_id not in location_ids:
        issues.append(ValidationIssue(f"{path}/locationId", f"Scene '{scene.id}' has unknown location '{scene.location_id}'"))

    for i, exit_ in enumerate(scene.exits):
        if exit_.target_scene not in scene_ids:
            issues.append(ValidationIssue(
                f"{path}/exits/{i}/targetScene",
                f"Exit '{exit_.label}' targets unknown scene '{exit_.target_scene}'",
            ))

    action_ids: set[str] = set()
    for i, action in enumerate(scene.actions):
        action_path = f"{path}/actions/{i}"
        if action.id in action_ids:
            issues.append(ValidationIssue(f"{action_path}/id", f"Duplicate action id '{action.id}' in scene '{scene.id}'"))
        action_ids.add(action.id)
        issues.extend(_validate_effects(action.effects, f"{action_path}/effects", scene_ids, location_ids))
        issues.extend(_validate_hooks(action.rule_hooks, f"{action_path}/ruleHooks", declared_modules))

    issues.extend(_validate_hooks(scene.entry_rules, f"{path}/entryRules", declared_modules))
    issues.extend(_validate_hooks(scene.exit_rules, f"{path}/exitRules", declared_modules))
    return issues


def _validate_effects(
    effects: Iterable[Effect], path: str, scene_ids: set[str], location_ids: set[str]
) -> list[ValidationIssue]:
    issues = []
    for i, effect in enumerate(effects):
        if not isinstance(effect, Teleport):
            continue
        if effect.target_scene not in scene_ids:
            issues.append(ValidationIssue(f"{path}/{i}/targetScene", f"Teleport targets unknown scene '{effect.target_scene}'"))
        if effect.target_location_id and effect.target_location_id not in location_ids:
            issues.append(ValidationIssue(
                f"{path}/{i}/targetLocationId",
                f"Teleport targets unknown location '{effect.target_location_id}'",
            ))
    return issues


def _validate_hooks(hooks: Iterable[RuleHook], path: str, declared_modules: set[str]) -> list[ValidationIssue]:
    issues = []
    for i, hook in enumerate(hooks):
        if hook.module_id and hook.module_id not in declared_modules:
            issues.append(ValidationIssue(
                f"{path}/{i}/moduleId",
                f"Hook '{hook.type}' names undeclared rule module '{hook.module_id}'",
                Severity.WARNING,
            ))
    return issues


def _reachable_scenes(bundle: StoryBundle) -> set[str]:
    """Scenes reachable from the start scene and location entry points via exits and teleports."""
    roots = [bundle.story.start_scene] + [loc.entry_scene for loc in bundle.world.locations]
    seen: set[str] = set()
    queue = deque(r for r in roots if bundle.has_scene(r))
    while queue:
        scene_id = queue.popleft()
        if scene_id in seen:
            continue
        seen.add(scene_id)
        scene = bundle.get_scene(scene_id)
        targets = [e.target_scene for e in scene.exits]
        for action in scene.actions:
            targets.extend(e.target_scene for e in action.effects if isinstance(e, Teleport))
        queue.extend(t for t in targets if t not in seen and bundle.has_scene(t))
    return seen
