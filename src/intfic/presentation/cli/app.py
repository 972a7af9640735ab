"""Console-driven UI loop for intfic."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, List, Sequence

from intfic.data.errors import DataLoadError, ParseError, ResolutionError
from intfic.data.paths import get_stories_path
from intfic.data.repositories import StoryRegistry
from intfic.domain.state import GameState
from intfic.presentation.cli.config import TEXT_MODES, load_config, save_config
from intfic.presentation.cli.render import ConsoleOutput, debug_enabled, render_choices, render_heading
from intfic.services import AwaitingChoice, EngineStatus, Halted, InputError, StoryEngine
from intfic.services.input_parsing import UNRECOGNISED_MESSAGE, is_exit_command, match_option
from intfic.services.story_engine import HALT_BLOCK_EXHAUSTED, HALT_GAME_OVER

DEFAULT_START_FILE = "example_1.txt"
DEFAULT_GAME_NAME = "Interactive Fiction"
EXIT_OK = 0
EXIT_FAILURE = 1

Prompt = Callable[[str], str]


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="intfic", description="Play a branching story written in intfic markup.")
    parser.add_argument("--stories", help="Directory containing story files (default: bundled stories).")
    parser.add_argument("--file", default=DEFAULT_START_FILE, help="Story file to start with.")
    parser.add_argument("--block", help="Block to start at (default: the file's entry block).")
    parser.add_argument("--name", default=DEFAULT_GAME_NAME, help="Title of this game session.")
    parser.add_argument("--text-mode", choices=TEXT_MODES, help="Print text instantly or like a typewriter.")
    parser.add_argument("--remember", action="store_true", help="Save --text-mode as the default.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: Sequence[str] | None = None, *, prompt: Prompt = input) -> int:
    """Start the interactive CLI session and return the process exit code."""
    args = build_arg_parser().parse_args(argv)
    _configure_logging(args.verbose or debug_enabled())

    config = load_config()
    text_mode = args.text_mode or config["text_display_mode"]
    if args.remember and args.text_mode:
        save_config({"text_display_mode": args.text_mode})

    registry = StoryRegistry(base_path=get_stories_path(args.stories))
    state = GameState(name=args.name)
    engine = StoryEngine(registry, state, ConsoleOutput(text_mode=text_mode))

    try:
        registry.load_file(args.file)
        engine.start(args.file, args.block)
    except (DataLoadError, ParseError, ResolutionError) as exc:
        print(f"Could not start story: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    status = run_story_loop(engine, prompt=prompt)
    exit_code = _report_outcome(status)
    if debug_enabled():
        render_heading("Game State")
        print(state.describe())
    return exit_code


def run_story_loop(engine: StoryEngine, *, prompt: Prompt = input) -> EngineStatus:
    """Feed reader choices to the engine until it halts or the reader quits."""
    status = engine.status
    while isinstance(status, AwaitingChoice):
        render_choices(status.labels)
        try:
            raw = prompt("> ")
        except EOFError:
            return status
        if is_exit_command(raw):
            return status
        index = match_option(raw, status.options)
        if index is None:
            if raw.strip():
                print(UNRECOGNISED_MESSAGE)
            continue
        try:
            status = engine.choose(index)
        except InputError as exc:
            print(exc)
    return status


def _report_outcome(status: EngineStatus) -> int:
    if not isinstance(status, Halted):
        print("See you next time!")
        return EXIT_OK
    if status.error is not None:
        print(f"Story stopped: {status.reason} ({status.details})", file=sys.stderr)
        return EXIT_FAILURE
    if status.reason == HALT_GAME_OVER:
        print("Game over.")
    elif status.reason != HALT_BLOCK_EXHAUSTED:
        print(f"Story stopped: {status.reason}")
    print("The End.")
    return EXIT_OK


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s", handlers=handlers)
