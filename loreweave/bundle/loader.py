"""Loading story and lore bundles from JSON."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from ..errors import BundleLoadError
from .lore import LoreBundle
from .models import StoryBundle
from .validation import ValidationResult, validate_bundle

logger = logging.getLogger(__name__)


def load_json(path: Path) -> object:
    """Load JSON from disk and raise BundleLoadError on failure."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise BundleLoadError(f"Bundle file not found: {path}") from exc
    except OSError as exc:
        raise BundleLoadError(f"Unable to read bundle file: {path}") from exc

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise BundleLoadError(f"Invalid JSON in {path}: {exc}") from exc


def default_catalog() -> Mapping[str, Any]:
    from ..rulesets import BUILTIN_MODULES
    return BUILTIN_MODULES


def check_bundle(bundle: StoryBundle, catalog: Mapping[str, Any] | None = None) -> ValidationResult:
    """Validate, log warnings, and raise BundleValidationError on any error."""
    result = validate_bundle(bundle, default_catalog() if catalog is None else catalog)
    for issue in result.warnings:
        logger.warning("Bundle '%s': %s", bundle.id, issue)
    result.raise_for_errors()
    return result


def parse_story_bundle(data: Any, catalog: Mapping[str, Any] | None = None) -> StoryBundle:
    """Parse and validate an in-memory story bundle document."""
    bundle = StoryBundle.from_dict(data)
    check_bundle(bundle, catalog)
    logger.info("Loaded story bundle '%s' v%s (%d scenes)", bundle.id, bundle.version, len(bundle.story.scenes))
    return bundle


def load_story_bundle(path: Path | str, catalog: Mapping[str, Any] | None = None) -> StoryBundle:
    return parse_story_bundle(load_json(Path(path)), catalog)


def load_lore_bundle(path: Path | str) -> LoreBundle:
    lore = LoreBundle.from_dict(load_json(Path(path)))
    logger.info("Loaded lore bundle '%s' v%s", lore.id, lore.version)
    return lore
