"""Narrative text resolution."""

from __future__ import annotations

from ..bundle.models import LocalizedText, NarrativeText, TextVariant
from ..errors import DiagnosticSink
from .conditions import ConditionEvaluator
from .rng import RNG
from .state import GameState


def resolve_text(
    text: NarrativeText | None,
    state: GameState,
    evaluator: ConditionEvaluator,
    rng: RNG | None = None,
    diagnostics: DiagnosticSink | None = None,
) -> str:
    """
    Turn NarrativeText into a display string.

    Localized lists use their first entry. Variant lists keep the
    entries whose condition holds; without an RNG the first of those is
    used, with one a weighted pick is made.
    """
    if text is None:
        return ""
    if isinstance(text, str):
        return text
    if not text:
        return ""
    if isinstance(text[0], LocalizedText):
        return text[0].text

    eligible: list[TextVariant] = [
        v for v in text if evaluator.evaluate(v.condition, state, diagnostics=diagnostics)
    ]
    if not eligible:
        return ""
    if rng is None:
        return eligible[0].text
    return _weighted_pick(eligible, rng).text


def _weighted_pick(variants: list[TextVariant], rng: RNG) -> TextVariant:
    total = sum(v.weight for v in variants)
    if total <= 0:
        return variants[0]
    point = rng.next() * total
    for variant in variants:
        point -= variant.weight
        if point < 0:
            return variant
    return variants[-1]
