"""
Loreweave CLI - Command-line interface for the engine.

Usage:
    loreweave validate <bundle_file>        Validate a story bundle
    loreweave play [bundle_file]            Play a bundle (default: the Rookhaven demo)
    loreweave serve                         Run the REST API
"""

import argparse
import logging
import os
import sys

from . import __version__
from .errors import LoreweaveError


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Loreweave - Narrative State Engine",
        prog="loreweave",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOREWEAVE_LOG_LEVEL", "WARNING"),
        help="Logging level (default: $LOREWEAVE_LOG_LEVEL or WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a story bundle")
    validate_parser.add_argument("bundle_file", help="Path to story bundle JSON")

    # Play command
    play_parser = subparsers.add_parser("play", help="Play a story bundle in the terminal")
    play_parser.add_argument("bundle_file", nargs="?", help="Path to story bundle JSON")
    play_parser.add_argument("--lore", action="append", default=[], help="Path to a lore bundle JSON")
    play_parser.add_argument("--seed", type=int, help="RNG seed for reproducible dice")
    play_parser.add_argument("--name", default="Adventurer", help="Character name")
    play_parser.add_argument(
        "--stat", action="append", default=[], metavar="KEY=VALUE", help="Character stat, e.g. str=12",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the REST API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "validate":
        cmd_validate(args)
    elif args.command == "play":
        cmd_play(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_validate(args):
    """Validate a story bundle and print every issue."""
    from .bundle import StoryBundle, validate_bundle
    from .bundle.loader import default_catalog, load_json

    try:
        bundle = StoryBundle.from_dict(load_json(args.bundle_file))
    except LoreweaveError as e:
        print(f"Error: {e}")
        sys.exit(1)

    result = validate_bundle(bundle, default_catalog())
    print(f"Bundle: {bundle.name} ({bundle.id} v{bundle.version})")
    print(f"Scenes: {len(bundle.story.scenes)}")
    print(f"Locations: {len(bundle.world.locations)}")

    if result.warnings:
        print("\nWarnings:")
        for w in result.warnings:
            print(f"  - {w.path}: {w.message}")

    if result.errors:
        print("\nErrors:")
        for e in result.errors:
            print(f"  - {e.path}: {e.message}")
        sys.exit(1)

    print("\nOK")


def _parse_stats(pairs):
    stats = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        stats[key] = float(value) if "." in value else int(value)
    return stats


def cmd_play(args):
    """Interactive play loop."""
    from .bundle import load_lore_bundle, load_story_bundle
    from .engine_core import Character
    from .session import PlayLoop, SessionManager
    from .stories import create_rookhaven_bundle, create_rookhaven_lore

    manager = SessionManager()
    try:
        if args.bundle_file:
            bundle = load_story_bundle(args.bundle_file)
        else:
            bundle = create_rookhaven_bundle()
            manager.register_lore(create_rookhaven_lore())
        for path in args.lore:
            manager.register_lore(load_lore_bundle(path))
        manager.register_bundle(bundle)
        stats = _parse_stats(args.stat) or {"str": 10, "dex": 10}
    except (LoreweaveError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    session = manager.create_session(bundle.id, Character(name=args.name, stats=stats), seed=args.seed)
    loop = PlayLoop(session)

    print(f"{bundle.name} (seed {session.seed})")
    print("Enter a number to choose, or 'q' to quit.\n")

    turn = loop.look()
    while True:
        for line in turn.narrative:
            print(f"> {line}")
        for err in turn.errors:
            print(f"! {err}")
        print(f"\n== {turn.title} ==")
        print(turn.text)
        print()
        for i, choice in enumerate(turn.choices, 1):
            marker = "->" if choice.kind == "exit" else "*"
            print(f"  {i}. {marker} {choice.label}")

        if not turn.choices:
            print("The story ends here.")
            break

        try:
            answer = input("\n? ").strip()
        except EOFError:
            break
        if answer.lower() in ("q", "quit", "exit"):
            break
        if not answer.isdigit() or not 1 <= int(answer) <= len(turn.choices):
            print(f"Pick a number between 1 and {len(turn.choices)}")
            turn = loop.look()
            continue
        turn = loop.choose(turn.choices[int(answer) - 1].ref)

    manager.end_session(session.session_id, reason="user_ended")


def cmd_serve(args):
    """Run the REST API with uvicorn."""
    import uvicorn

    uvicorn.run("loreweave.api.app:app", host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
