"""
Stories - bundled content.

Each story module exposes a create_*_bundle() factory returning a
validated StoryBundle.
"""

from .rookhaven import create_rookhaven_bundle, create_rookhaven_lore

STORIES = {
    "rookhaven": create_rookhaven_bundle,
}

__all__ = [
    "STORIES",
    "create_rookhaven_bundle",
    "create_rookhaven_lore",
]
