"""Execution engine that walks story blocks node by node."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Literal, Protocol, Tuple, Union

from intfic.data.errors import ResolutionError
from intfic.data.repositories import ResolvedBlock, StoryRegistry
from intfic.domain.defs import (
    ColorTag,
    ConditionalBlock,
    Destination,
    FileRef,
    Jump,
    Node,
    Option,
    OptionMenu,
    StateDirective,
    TextRun,
)
from intfic.domain.predicates import describe, evaluate
from intfic.domain.state import GameState
from intfic.services.errors import DestinationError, InputError

logger = logging.getLogger(__name__)

HALT_NOT_STARTED = "not started"
HALT_BLOCK_EXHAUSTED = "block exhausted"
HALT_UNRESOLVED_DESTINATION = "unresolved destination"
HALT_GAME_OVER = "game over"
HALT_STEP_LIMIT = "step limit reached"

DEFAULT_STEP_LIMIT = 100_000


class StoryOutput(Protocol):
    """Receives rendered text in execution order."""

    def render(self, text: str, color: ColorTag | None) -> None:
        ...

    def end_line(self) -> None:
        ...


@dataclass(frozen=True, slots=True)
class Running:
    file_id: str
    block: str
    node_index: int
    kind: Literal["running"] = field(default="running", init=False)


@dataclass(frozen=True, slots=True)
class AwaitingChoice:
    """The engine is blocked until the reader picks one of ``options``."""

    file_id: str
    block: str
    options: Tuple[Option, ...]
    kind: Literal["awaiting_choice"] = field(default="awaiting_choice", init=False)

    @property
    def labels(self) -> List[str]:
        return [option.label for option in self.options]


@dataclass(frozen=True, slots=True)
class Halted:
    """Terminal status; ``error`` is set when a run ended on a failure."""

    reason: str
    details: str | None = None
    error: Exception | None = None
    kind: Literal["halted"] = field(default="halted", init=False)


EngineStatus = Union[Running, AwaitingChoice, Halted]


@dataclass(slots=True)
class _Cursor:
    nodes: Tuple[Node, ...]
    index: int = 0

    @property
    def exhausted(self) -> bool:
        return self.index >= len(self.nodes)


class StoryEngine:
    """Runs story blocks against an exclusively owned GameState.

    Nodes execute one at a time. A conditional pushes its chosen branch as a
    nested cursor so the branch runs as if inlined; a jump or chosen option
    replaces the whole cursor stack with the destination block.
    """

    def __init__(self, registry: StoryRegistry, state: GameState, output: StoryOutput) -> None:
        self._registry = registry
        self._state = state
        self._output = output
        self._status: EngineStatus = Halted(HALT_NOT_STARTED)
        self._cursors: List[_Cursor] = []
        self._file_id = ""
        self._block_name = ""

    @property
    def status(self) -> EngineStatus:
        return self._status

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def current_file(self) -> str:
        return self._file_id

    @property
    def current_block(self) -> str:
        return self._block_name

    def start(self, file_id: str, block: str | None = None) -> EngineStatus:
        """Enter ``block`` of ``file_id`` (its entry block when omitted) and run.

        A ResolutionError here propagates: nothing has run yet, so the caller
        decides whether startup failed.
        """
        resolved = self._registry.resolve(FileRef(file=file_id, block=block), file_id)
        self._enter(resolved)
        return self.run()

    def run(self, step_limit: int = DEFAULT_STEP_LIMIT) -> EngineStatus:
        """Execute nodes until the engine waits for a choice or halts."""
        steps = 0
        while isinstance(self._status, Running):
            if steps >= step_limit:
                logger.warning("Step limit of %d reached in %s:%s", step_limit, self._file_id, self._block_name)
                self._halt(HALT_STEP_LIMIT, details=f"{self._file_id}:{self._block_name}")
                break
            self.step()
            steps += 1
        return self._status

    def step(self) -> EngineStatus:
        """Execute the next node; a no-op unless the engine is Running."""
        if not isinstance(self._status, Running):
            return self._status
        while self._cursors and self._cursors[-1].exhausted:
            self._cursors.pop()
        if not self._cursors:
            return self._halt(HALT_BLOCK_EXHAUSTED, details=f"{self._file_id}:{self._block_name}")

        cursor = self._cursors[-1]
        node = cursor.nodes[cursor.index]
        cursor.index += 1
        self._execute(node)
        if isinstance(self._status, Running):
            self._status = Running(self._file_id, self._block_name, self._cursors[0].index)
        return self._status

    def choose(self, index: int) -> EngineStatus:
        """Apply the reader's selection, an index into the visible options.

        Raises InputError without changing anything when no choice is pending
        or the index is out of range.
        """
        status = self._status
        if not isinstance(status, AwaitingChoice):
            raise InputError("No choice is pending.")
        if isinstance(index, bool) or not isinstance(index, int):
            raise InputError(f"Choice must be an integer, got {index!r}.")
        if not 0 <= index < len(status.options):
            raise InputError(
                f"Choice {index} is out of range; expected 0 to {len(status.options) - 1}."
            )
        option = status.options[index]
        logger.debug("Chose '%s' -> %s", option.label, option.destination)
        self._status = Running(self._file_id, self._block_name, self._cursors[0].index if self._cursors else 0)
        self._transfer(option.destination)
        return self.run()

    # Node execution ---------------------------------------------------------

    def _execute(self, node: Node) -> None:
        if isinstance(node, TextRun):
            self._output.render(node.content, node.color)
            if node.ends_line:
                self._output.end_line()
        elif isinstance(node, StateDirective):
            self._apply_directive(node)
            if self._state.is_game_over():
                self._halt(HALT_GAME_OVER)
        elif isinstance(node, ConditionalBlock):
            branch = node.then_nodes if evaluate(node.predicate, self._state) else node.else_nodes
            if branch:
                self._cursors.append(_Cursor(branch))
        elif isinstance(node, Jump):
            self._transfer(node.destination)
        elif isinstance(node, OptionMenu):
            visible = tuple(option for option in node.options if self._option_visible(option))
            if visible:
                self._status = AwaitingChoice(self._file_id, self._block_name, visible)
            else:
                logger.debug("All options guarded out in %s:%s", self._file_id, self._block_name)
        else:
            raise TypeError(f"Unsupported node: {node!r}")

    def _option_visible(self, option: Option) -> bool:
        if option.guard is None or evaluate(option.guard, self._state):
            return True
        logger.debug("Hiding option '%s': %s is false", option.label, describe(option.guard))
        return False

    def _apply_directive(self, directive: StateDirective) -> None:
        op = directive.op
        if op == "set_flag":
            self._state.set_flag(directive.target, True)
        elif op == "clear_flag":
            self._state.set_flag(directive.target, False)
        elif op == "incr_counter":
            self._state.adjust_counter(directive.target, directive.amount if directive.amount is not None else 1)
        elif op == "decr_counter":
            self._state.adjust_counter(directive.target, -(directive.amount if directive.amount is not None else 1))
        elif op == "set_counter":
            self._state.set_counter(directive.target, directive.amount or 0)
        else:
            raise ValueError(f"Unknown directive op '{op}'.")

    # Control transfer -------------------------------------------------------

    def _transfer(self, destination: Destination) -> None:
        try:
            resolved = self._registry.resolve(destination, self._file_id)
        except ResolutionError as exc:
            error = DestinationError(f"Cannot go to '{destination}': {exc}", destination=destination)
            error.__cause__ = exc
            logger.warning(
                "Unresolved destination %s from %s:%s: %s", destination, self._file_id, self._block_name, exc
            )
            self._halt(HALT_UNRESOLVED_DESTINATION, details=str(exc), error=error)
            return
        self._enter(resolved)

    def _enter(self, resolved: ResolvedBlock) -> None:
        self._file_id = resolved.file_id
        self._block_name = resolved.block.name
        self._cursors = [_Cursor(resolved.block.nodes)]
        self._state.set_progress(resolved.file_id, resolved.block.name)
        self._status = Running(resolved.file_id, resolved.block.name, 0)
        logger.debug("Entered block %s:%s", resolved.file_id, resolved.block.name)

    def _halt(self, reason: str, *, details: str | None = None, error: Exception | None = None) -> Halted:
        halted = Halted(reason, details=details, error=error)
        self._cursors = []
        self._status = halted
        logger.debug("Halted: %s%s", reason, f" ({details})" if details else "")
        return halted
