"""
Loreweave - Narrative State Engine

A data-driven engine for narrative role-playing games.
Authored content ships as JSON story bundles; the engine provides:
- Condition evaluation (which choices are visible)
- Ordered effect application (save-state mutation)
- Pluggable rule modules (dice, skill checks, combat)
- Scene navigation orchestrating all of the above
"""

__version__ = "1.3.0"
