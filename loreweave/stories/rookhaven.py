"""
Rookhaven - the bundled demo story.

A small market town, its tavern cellar, and the road into the
Whisperwood. Exercises every condition and effect type and the
skillCheck hook of the core rules.
"""

from __future__ import annotations
from typing import Any

from ..bundle.loader import check_bundle
from ..bundle.lore import LoreBundle
from ..bundle.models import StoryBundle

COIN = {"id": "coin", "name": "Silver Coin", "tags": ["currency"]}
DAGGER = {"id": "dagger", "name": "Iron Dagger", "tags": ["weapon"], "properties": {"damage": "1d4"}}
LANTERN = {"id": "lantern", "name": "Hooded Lantern", "tags": ["light"]}


ROOKHAVEN_STORY: dict[str, Any] = {
    "id": "rookhaven",
    "name": "The Lights of Rookhaven",
    "version": "1.3.0",
    "schemaVersion": "storybundle@1.3",
    "description": "Strange lights flicker in the Whisperwood beyond the town gate.",
    "loreRefs": [{"id": "rookhaven-lore"}],
    "ruleModules": [{"id": "rules.core", "system": "Custom", "version": "1.0.0"}],
    "metadata": {"author": "Loreweave", "themes": ["mystery", "folk-horror"], "contentRating": "teen"},
    "world": {
        "id": "rookhaven-world",
        "name": "The Rook Marches",
        "regions": [
            {"id": "rook_marches", "name": "The Rook Marches", "locationIds": ["rookhaven_town", "whisperwood"]},
        ],
        "locations": [
            {
                "id": "rookhaven_town",
                "name": "Rookhaven",
                "type": "town",
                "entryScene": "town_square",
                "sceneIds": ["town_square", "blacksmith", "tavern", "town_gate"],
                "tags": ["safe"],
            },
            {
                "id": "tavern_cellar",
                "name": "The Drowned Rook Cellar",
                "type": "dungeon",
                "entryScene": "cellar",
                "sceneIds": ["cellar"],
            },
            {
                "id": "whisperwood",
                "name": "The Whisperwood",
                "type": "wilderness",
                "entryScene": "forest_road",
                "sceneIds": ["forest_road"],
            },
        ],
    },
    "story": {
        "startScene": "town_square",
        "scenes": [
            {
                "id": "town_square",
                "title": "Town Square",
                "locationId": "rookhaven_town",
                "narrative": {
                    "text": "Market stalls ring a dry fountain. A patrol of the Watch eyes you from the steps.",
                    "loreRefs": [{"type": "faction", "id": "watch"}],
                },
                "actions": [
                    {
                        "id": "search_fountain",
                        "label": "Search the dry fountain",
                        "category": "search",
                        "condition": {"type": "flag", "key": "found.coin", "operator": "notExists"},
                        "effects": [
                            {"type": "setFlag", "key": "found.coin", "value": True},
                            {"type": "addItem", "item": COIN, "count": 1},
                        ],
                    },
                ],
                "exits": [
                    {"id": "to_smithy", "label": "Visit the blacksmith", "targetScene": "blacksmith"},
                    {"id": "to_tavern", "label": "Enter the Drowned Rook", "targetScene": "tavern"},
                    {"id": "to_gate", "label": "Walk to the town gate", "targetScene": "town_gate"},
                ],
            },
            {
                "id": "blacksmith",
                "title": "Hobb's Forge",
                "locationId": "rookhaven_town",
                "narrative": {"text": [
                    {"text": "Hobb hammers at a glowing blade and does not look up.",
                     "condition": {"type": "flag", "key": "met.blacksmith", "operator": "notExists"}},
                    {"text": "Hobb nods at you between hammer blows."},
                ]},
                "actions": [
                    {
                        "id": "greet_smith",
                        "label": "Ask about the lights",
                        "category": "talk",
                        "effects": [
                            {"type": "setFlag", "key": "met.blacksmith"},
                            {"type": "setVar", "key": "rumour", "value": "The lights come from the old shrine."},
                        ],
                    },
                    {
                        "id": "buy_dagger",
                        "label": "Buy a dagger (1 silver)",
                        "category": "use",
                        "condition": {"type": "inventory", "key": "coin", "operator": "countGte", "value": 1},
                        "effects": [
                            {"type": "removeItem", "itemId": "coin", "count": 1},
                            {"type": "addItem", "item": DAGGER},
                        ],
                    },
                ],
                "exits": [{"label": "Back to the square", "targetScene": "town_square"}],
            },
            {
                "id": "tavern",
                "title": "The Drowned Rook",
                "locationId": "rookhaven_town",
                "narrative": {"text": "Smoke, stale ale, and a dockhand slapping the table for a challenger."},
                "actions": [
                    {
                        "id": "arm_wrestle",
                        "label": "Arm-wrestle the dockhand",
                        "category": "other",
                        "ruleHooks": [{
                            "type": "skillCheck",
                            "moduleId": "rules.core",
                            "payload": {
                                "stat": "str",
                                "dc": 12,
                                "onSuccess": [
                                    {"type": "modifyVar", "key": "tavern.wins", "delta": 1},
                                    {"type": "setFlag", "key": "met.barkeep"},
                                ],
                                "onFailure": [{"type": "modifyStat", "key": "hp", "delta": -1, "min": 0}],
                            },
                        }],
                    },
                    {
                        "id": "buy_round",
                        "label": "Buy the room a round",
                        "category": "talk",
                        "condition": {"type": "inventory", "key": "coin"},
                        "effects": [
                            {"type": "removeItem", "itemId": "coin"},
                            {"type": "setFlag", "key": "met.barkeep"},
                            {"type": "setReputation", "factionId": "dockers", "value": 1},
                        ],
                    },
                ],
                "exits": [
                    {"label": "Back to the square", "targetScene": "town_square"},
                    {
                        "id": "cellar_stairs",
                        "label": "Slip down to the cellar",
                        "targetScene": "cellar",
                        "condition": {"type": "flag", "key": "met.barkeep"},
                        "travelText": "The barkeep looks away as you lift the trapdoor.",
                    },
                ],
            },
            {
                "id": "cellar",
                "title": "The Cellar",
                "locationId": "tavern_cellar",
                "narrative": {"text": "Barrels, damp stone, and a lantern hanging from a hook."},
                "entryRules": [{
                    "type": "skillCheck",
                    "payload": {
                        "stat": "dex",
                        "dc": 8,
                        "successText": "You take the slick steps with care.",
                        "failureText": "You slip on the slick steps.",
                        "onFailure": [{"type": "modifyStat", "key": "hp", "delta": -1, "min": 0}],
                    },
                }],
                "actions": [
                    {
                        "id": "take_lantern",
                        "label": "Take the lantern",
                        "condition": {"type": "inventory", "key": "lantern", "operator": "notHas"},
                        "effects": [{"type": "addItem", "item": LANTERN}],
                    },
                ],
                "exits": [{"label": "Climb back up", "targetScene": "tavern"}],
            },
            {
                "id": "town_gate",
                "title": "The North Gate",
                "locationId": "rookhaven_town",
                "narrative": {"text": "A bored guard leans on his spear. Beyond, the road vanishes into the trees."},
                "actions": [
                    {
                        "id": "ask_guard",
                        "label": "Ask the guard about the Watch",
                        "category": "talk",
                        "condition": {"type": "lore", "key": "faction:watch"},
                        "effects": [{"type": "modifyVar", "key": "journal", "delta": "The Watch guards the north road. "}],
                    },
                ],
                "exits": [
                    {"label": "Back to the square", "targetScene": "town_square"},
                    {
                        "id": "north_road",
                        "label": "Take the north road",
                        "targetScene": "forest_road",
                        "condition": {"type": "inventory", "key": "dagger"},
                        "travelText": "The guard shrugs and lets you pass.",
                    },
                ],
            },
            {
                "id": "forest_road",
                "title": "The Whisperwood Road",
                "locationId": "whisperwood",
                "narrative": {"text": [
                    {"text": "Pale lights drift between the trunks.", "weight": 3},
                    {"text": "Something keeps pace with you, just out of sight.", "weight": 1},
                ]},
                "actions": [
                    {
                        "id": "follow_lights",
                        "label": "Follow the lights",
                        "category": "move",
                        "effects": [
                            {"type": "setFlag", "key": "followed.lights"},
                            {"type": "teleport", "targetScene": "town_square", "targetLocationId": "rookhaven_town"},
                        ],
                    },
                ],
                "exits": [{"label": "Return to the gate", "targetScene": "town_gate"}],
            },
        ],
    },
}


ROOKHAVEN_LORE: dict[str, Any] = {
    "id": "rookhaven-lore",
    "name": "Lore of the Rook Marches",
    "version": "1.0.0",
    "races": [
        {"id": "human", "name": "Human"},
        {"id": "dwarf", "name": "Dwarf", "traits": ["darkvision"]},
    ],
    "factions": [
        {"id": "watch", "name": "The Rookhaven Watch", "alignment": "lawful"},
        {"id": "dockers", "name": "Dockers' Guild", "alignment": "neutral"},
    ],
    "locations": [{"id": "old_shrine", "name": "The Old Shrine"}],
}


def create_rookhaven_bundle() -> StoryBundle:
    """Build and validate the demo story bundle."""
    bundle = StoryBundle.from_dict(ROOKHAVEN_STORY)
    check_bundle(bundle)
    return bundle


def create_rookhaven_lore() -> LoreBundle:
    return LoreBundle.from_dict(ROOKHAVEN_LORE)
