"""
Pytest fixtures for Loreweave tests.
"""

import itertools

import pytest

from ..bundle.lore import LoreBundle, LoreIndex
from ..bundle.models import StoryBundle
from ..engine_core.state import Character, GameState
from ..rulesets import BUILTIN_MODULES
from ..stories import create_rookhaven_bundle, create_rookhaven_lore


def minimal_bundle_dict() -> dict:
    """Two scenes, one gated action, one gated exit, core rules declared."""
    return {
        "id": "mini",
        "name": "Mini Story",
        "version": "0.1.0",
        "ruleModules": [{"id": "rules.core", "system": "Custom"}],
        "world": {
            "locations": [
                {"id": "village", "name": "Village", "entryScene": "start", "sceneIds": ["start", "hall"]},
            ],
        },
        "story": {
            "startScene": "start",
            "scenes": [
                {
                    "id": "start",
                    "title": "Start",
                    "narrative": {"text": "You stand at the start."},
                    "actions": [
                        {
                            "id": "find_key",
                            "label": "Look under the mat",
                            "condition": {"type": "flag", "key": "found.key", "operator": "notExists"},
                            "effects": [
                                {"type": "setFlag", "key": "found.key"},
                                {"type": "addItem", "item": {"id": "key", "name": "Brass Key"}},
                            ],
                        },
                    ],
                    "exits": [
                        {
                            "id": "door",
                            "label": "Unlock the door",
                            "targetScene": "hall",
                            "condition": {"type": "inventory", "key": "key"},
                        },
                    ],
                },
                {
                    "id": "hall",
                    "title": "Hall",
                    "narrative": {"text": "A quiet hall."},
                    "exits": [{"label": "Go back", "targetScene": "start"}],
                },
            ],
        },
    }


@pytest.fixture
def mini_bundle() -> StoryBundle:
    """Parsed minimal bundle."""
    return StoryBundle.from_dict(minimal_bundle_dict())


@pytest.fixture
def rookhaven() -> StoryBundle:
    """The bundled demo story."""
    return create_rookhaven_bundle()


@pytest.fixture
def rookhaven_lore() -> LoreBundle:
    return create_rookhaven_lore()


@pytest.fixture
def lore_index(rookhaven_lore: LoreBundle) -> LoreIndex:
    return LoreIndex([rookhaven_lore])


@pytest.fixture
def catalog():
    return BUILTIN_MODULES


@pytest.fixture
def hero() -> Character:
    return Character(name="Hero", stats={"str": 10, "dex": 10, "hp": 5})


@pytest.fixture
def town_square_state(hero: Character) -> GameState:
    """A fresh state in the Rookhaven town square."""
    return GameState(
        story_bundle_id="rookhaven",
        current_scene_id="town_square",
        current_location_id="rookhaven_town",
        character=hero,
    )


@pytest.fixture
def fixed_clock():
    """A clock returning increasing, predictable timestamps."""
    counter = itertools.count()
    return lambda: f"2024-01-01T00:00:{next(counter):02d}.000Z"
