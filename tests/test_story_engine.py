import logging

import pytest

from intfic.data.errors import ResolutionError
from intfic.data.repositories import StoryRegistry
from intfic.domain.state import GameState
from intfic.services import AwaitingChoice, DestinationError, Halted, InputError, StoryEngine
from intfic.services.story_engine import (
    DEFAULT_STEP_LIMIT,
    HALT_BLOCK_EXHAUSTED,
    HALT_GAME_OVER,
    HALT_NOT_STARTED,
    HALT_STEP_LIMIT,
    HALT_UNRESOLVED_DESTINATION,
)

_HERO_STORY = """\
@block start
Welcome
@set flag:metHero
@option Continue -> end if flag:metHero==true
@end

@block end
The hero greets you.
@end
"""


def test_hero_story_waits_for_choice_then_finishes(make_engine, output) -> None:
    engine = make_engine({"main.txt": _HERO_STORY})

    status = engine.start("main.txt")

    assert isinstance(status, AwaitingChoice)
    assert status.labels == ["Continue"]
    assert output.texts == ["Welcome"]
    assert engine.state.get_flag("metHero") is True

    status = engine.choose(0)

    assert status == Halted(HALT_BLOCK_EXHAUSTED, details="main.txt:end")
    assert output.texts == ["Welcome", "The hero greets you."]
    assert output.lines == ["Welcome", "The hero greets you."]


def test_new_engine_is_halted_until_started(make_engine) -> None:
    engine = make_engine({"main.txt": _HERO_STORY})

    assert isinstance(engine.status, Halted)
    assert engine.status.reason == HALT_NOT_STARTED
    with pytest.raises(InputError):
        engine.choose(0)


def test_color_runs_reach_the_output_in_order(make_engine, output) -> None:
    engine = make_engine({"main.txt": "@block a\nA {red}red{/red} word.\nNext.\n@end\n"})

    engine.start("main.txt")

    assert output.runs == [("A ", None), ("red", "red"), (" word.", None), ("Next.", None)]
    assert output.lines == ["A red word.", "Next."]


def test_undefined_jump_halts_and_keeps_state(make_engine, output) -> None:
    engine = make_engine(
        {"main.txt": "@block a\n@incr counter:gold 3\nBefore.\n@jump nowhere\nNever shown.\n@end\n"}
    )

    status = engine.start("main.txt")

    assert isinstance(status, Halted)
    assert status.reason == HALT_UNRESOLVED_DESTINATION
    assert isinstance(status.error, DestinationError)
    assert isinstance(status.error.__cause__, ResolutionError)
    assert "nowhere" in (status.details or "")
    assert engine.state.get_counter("gold") == 3
    assert output.texts == ["Before."]


def test_undefined_option_destination_halts_after_choice(make_engine) -> None:
    engine = make_engine({"main.txt": "@block a\n@option Go -> other.txt:b\n@end\n"})
    engine.start("main.txt")

    status = engine.choose(0)

    assert isinstance(status, Halted)
    assert status.reason == HALT_UNRESOLVED_DESTINATION
    assert status.error.destination is not None


def test_out_of_range_choice_changes_nothing(make_engine) -> None:
    engine = make_engine(
        {"main.txt": "@block a\n@set counter:gold 2\n@option Left -> a\n@option Right -> a\n@end\n"}
    )
    status = engine.start("main.txt")
    before = engine.state.snapshot()

    for bad_index in (2, -1):
        with pytest.raises(InputError):
            engine.choose(bad_index)

    assert engine.status == status
    assert engine.state.snapshot() == before


def test_non_integer_choice_is_rejected(make_engine) -> None:
    engine = make_engine({"main.txt": "@block a\n@option Left -> a\n@end\n"})
    engine.start("main.txt")

    with pytest.raises(InputError):
        engine.choose(True)
    with pytest.raises(InputError):
        engine.choose("0")


def test_false_conditional_leaves_state_untouched(make_engine, output) -> None:
    engine = make_engine(
        {
            "main.txt": (
                "@block a\n"
                "@if flag:key\n"
                "You unlock the door.\n"
                "@set flag:door_open\n"
                "@incr counter:steps\n"
                "@endif\n"
                "Done.\n"
                "@end\n"
            )
        }
    )

    engine.start("main.txt")

    assert engine.state.snapshot() == ({}, {})
    assert output.texts == ["Done."]


def test_else_branch_and_nested_conditionals_run_inline(make_engine, output) -> None:
    engine = make_engine(
        {
            "main.txt": (
                "@block a\n"
                "@set counter:gold 7\n"
                "@if flag:poor\n"
                "Poor.\n"
                "@else\n"
                "Not poor.\n"
                "@if counter:gold > 5\n"
                "Quite rich.\n"
                "@endif\n"
                "Still in else.\n"
                "@endif\n"
                "After.\n"
                "@end\n"
            )
        }
    )

    engine.start("main.txt")

    assert output.texts == ["Not poor.", "Quite rich.", "Still in else.", "After."]


def test_directives_are_visible_to_later_predicates(make_engine, output) -> None:
    engine = make_engine(
        {
            "main.txt": (
                "@block a\n"
                "@incr counter:coins 2\n"
                "@decr counter:coins\n"
                "@if counter:coins == 1 and not flag:robbed\n"
                "One coin left.\n"
                "@endif\n"
                "@set flag:robbed\n"
                "@if flag:robbed\n"
                "Robbed!\n"
                "@endif\n"
                "@end\n"
            )
        }
    )

    engine.start("main.txt")

    assert output.texts == ["One coin left.", "Robbed!"]
    assert engine.state.snapshot() == ({"robbed": True}, {"coins": 1})


def test_guards_filter_options(make_engine) -> None:
    engine = make_engine(
        {
            "main.txt": (
                "@block a\n"
                "@set flag:has_key\n"
                "@option Open the door -> door if flag:has_key\n"
                "@option Pick the lock -> door if counter:skill >= 3\n"
                "@option Walk away -> away\n"
                "@end\n"
                "@block door\nInside.\n@end\n"
                "@block away\nOutside.\n@end\n"
            )
        }
    )

    status = engine.start("main.txt")

    assert status.labels == ["Open the door", "Walk away"]
    status = engine.choose(1)
    assert status == Halted(HALT_BLOCK_EXHAUSTED, details="main.txt:away")


def test_all_guarded_menu_falls_through(make_engine, output) -> None:
    engine = make_engine(
        {"main.txt": "@block a\n@option Secret -> a if flag:never\nFell through.\n@jump b\n@end\n@block b\nB.\n@end\n"}
    )

    status = engine.start("main.txt")

    assert output.texts == ["Fell through.", "B."]
    assert isinstance(status, Halted)
    assert status.reason == HALT_BLOCK_EXHAUSTED


def test_jump_out_of_a_conditional_discards_the_rest_of_the_block(make_engine, output) -> None:
    engine = make_engine(
        {
            "main.txt": (
                "@block a\n"
                "@if not flag:x\n"
                "@jump b\n"
                "Skipped.\n"
                "@endif\n"
                "Also skipped.\n"
                "@end\n"
                "@block b\n"
                "Landed.\n"
                "@end\n"
            )
        }
    )

    status = engine.start("main.txt")

    assert output.texts == ["Landed."]
    assert status == Halted(HALT_BLOCK_EXHAUSTED, details="main.txt:b")


def test_cross_file_destinations_use_entry_blocks_and_track_progress(make_engine, output) -> None:
    engine = make_engine(
        {
            "one.txt": "@block start\nIn one.\n@option Travel -> two.txt:\n@end\n@block back\nBack.\n@end\n",
            "two.txt": "@entry arrive\n@block other\nWrong.\n@end\n@block arrive\nIn two.\n@jump one.txt:back\n@end\n",
        }
    )

    engine.start("one.txt")
    assert engine.state.progress == ("one.txt", "start")

    status = engine.choose(0)

    assert output.texts == ["In one.", "In two.", "Back."]
    assert engine.current_file == "one.txt"
    assert engine.current_block == "back"
    assert engine.state.progress == ("one.txt", "back")
    assert status == Halted(HALT_BLOCK_EXHAUSTED, details="one.txt:back")


def test_block_ref_resolves_in_the_current_file(make_engine, output) -> None:
    engine = make_engine(
        {
            "one.txt": "@block start\n@jump two.txt:mid\n@end\n@block finale\nWrong file.\n@end\n",
            "two.txt": "@block mid\n@jump finale\n@end\n@block finale\nRight file.\n@end\n",
        }
    )

    engine.start("one.txt")

    assert output.texts == ["Right file."]


def test_start_at_named_block(make_engine, output) -> None:
    engine = make_engine({"main.txt": "@block a\nA.\n@end\n@block b\nB.\n@end\n"})

    engine.start("main.txt", "b")

    assert output.texts == ["B."]


def test_start_with_unknown_block_raises(make_engine) -> None:
    engine = make_engine({"main.txt": "@block a\n@end\n"})

    with pytest.raises(ResolutionError):
        engine.start("main.txt", "missing")
    with pytest.raises(ResolutionError):
        engine.start("other.txt")


def test_game_over_flag_halts_immediately(make_engine, output) -> None:
    engine = make_engine(
        {"main.txt": "@block a\nThe end approaches.\n@incr counter:score 10\n@set flag:game_over\nNever shown.\n@end\n"}
    )

    status = engine.start("main.txt")

    assert status == Halted(HALT_GAME_OVER)
    assert output.texts == ["The end approaches."]
    assert engine.state.get_counter("score") == 10


def test_step_limit_stops_jump_loops(make_engine) -> None:
    engine = make_engine({"main.txt": "@block a\n@incr counter:laps\n@jump a\n@end\n"})

    status = engine.start("main.txt")

    assert isinstance(status, Halted)
    assert status.reason == HALT_STEP_LIMIT
    assert status.details == "main.txt:a"
    assert engine.state.get_counter("laps") == DEFAULT_STEP_LIMIT // 2


def test_run_and_step_are_no_ops_once_halted(make_engine, output) -> None:
    engine = make_engine({"main.txt": "@block a\nOnly.\n@end\n"})
    status = engine.start("main.txt")

    assert engine.step() is status
    assert engine.run() is status
    assert output.texts == ["Only."]


def test_engine_mutates_the_state_it_was_given(make_engine) -> None:
    state = GameState(name="Shared")
    engine = make_engine({"main.txt": "@block a\n@set flag:seen\n@end\n"}, state=state)

    engine.start("main.txt")

    assert engine.state is state
    assert state.get_flag("seen") is True


def test_engine_accepts_any_output_protocol_implementation() -> None:
    class Collect:
        def __init__(self) -> None:
            self.parts = []

        def render(self, text, color) -> None:
            self.parts.append(text)

        def end_line(self) -> None:
            self.parts.append("\n")

    registry = StoryRegistry()
    registry.load("main.txt", "@block a\nHi\n@end\n")
    collector = Collect()

    StoryEngine(registry, GameState(), collector).start("main.txt")

    assert "".join(collector.parts) == "Hi\n"


def test_hidden_options_are_logged_with_their_guard(make_engine, caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="intfic.services.story_engine")
    engine = make_engine({"main.txt": "@block a\n@option Secret -> a if flag:never\n@end\n"})

    engine.start("main.txt")

    assert "Hiding option 'Secret': flag:never is false" in caplog.messages
