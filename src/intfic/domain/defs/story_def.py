"""Story definition structures used by the runtime.

Parsed stories are immutable: every node is a frozen dataclass and nested
sequences are tuples. Each variant carries a ``kind`` tag so callers can
dispatch without isinstance chains when that reads better.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Mapping, Tuple, Union

ColorTag = Literal["red", "green", "yellow", "blue", "cyan", "purple", "white"]
COLOR_TAGS: Tuple[str, ...] = ("red", "green", "yellow", "blue", "cyan", "purple", "white")

DirectiveOp = Literal["set_flag", "clear_flag", "incr_counter", "decr_counter", "set_counter"]
CompareOp = Literal["<", "<=", "==", ">=", ">"]

# Word lists an option keyword can name as ``@NAME``.
VOCABULARY_NAMES: Tuple[str, ...] = (
    "AFFIRMATIVES",
    "NEGATIVES",
    "UNSURATIVES",
    "NORTHS",
    "EASTS",
    "SOUTHS",
    "WESTS",
    "UPS",
    "DOWNS",
    "RETURNS",
)


# Predicates -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FlagTest:
    """True when the flag's value equals ``expected``."""

    name: str
    expected: bool = True
    kind: Literal["flag"] = field(default="flag", init=False)


@dataclass(frozen=True, slots=True)
class CounterCompare:
    name: str
    op: CompareOp
    value: int
    kind: Literal["counter"] = field(default="counter", init=False)


@dataclass(frozen=True, slots=True)
class Not:
    operand: "Predicate"
    kind: Literal["not"] = field(default="not", init=False)


@dataclass(frozen=True, slots=True)
class And:
    left: "Predicate"
    right: "Predicate"
    kind: Literal["and"] = field(default="and", init=False)


@dataclass(frozen=True, slots=True)
class Or:
    left: "Predicate"
    right: "Predicate"
    kind: Literal["or"] = field(default="or", init=False)


Predicate = Union[FlagTest, CounterCompare, Not, And, Or]


# Destinations ---------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BlockRef:
    """A block in the story file that is currently playing."""

    block: str
    kind: Literal["block"] = field(default="block", init=False)

    def __str__(self) -> str:
        return self.block


@dataclass(frozen=True, slots=True)
class FileRef:
    """A block in another story file; ``block=None`` means its entry block."""

    file: str
    block: str | None = None
    kind: Literal["file"] = field(default="file", init=False)

    def __str__(self) -> str:
        return f"{self.file}:{self.block or ''}"


Destination = Union[BlockRef, FileRef]


# Nodes ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TextRun:
    """A run of narrative text.

    ``ends_line`` is set on the last run of each source line so a colored span
    in the middle of a line does not split it when rendered.
    """

    content: str
    color: ColorTag | None = None
    ends_line: bool = True
    kind: Literal["text"] = field(default="text", init=False)


@dataclass(frozen=True, slots=True)
class ConditionalBlock:
    predicate: Predicate
    then_nodes: Tuple["Node", ...] = ()
    else_nodes: Tuple["Node", ...] = ()
    kind: Literal["conditional"] = field(default="conditional", init=False)


@dataclass(frozen=True, slots=True)
class StateDirective:
    op: DirectiveOp
    target: str
    amount: int | None = None
    kind: Literal["directive"] = field(default="directive", init=False)


@dataclass(frozen=True, slots=True)
class Option:
    """A selectable entry of an option menu.

    ``keywords`` are extra words the reader may type to pick the option; an
    entry of the form ``@NAME`` stands for one of the built-in word lists.
    """

    label: str
    destination: Destination
    guard: Predicate | None = None
    keywords: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class OptionMenu:
    options: Tuple[Option, ...]
    kind: Literal["menu"] = field(default="menu", init=False)


@dataclass(frozen=True, slots=True)
class Jump:
    destination: Destination
    kind: Literal["jump"] = field(default="jump", init=False)


Node = Union[TextRun, ConditionalBlock, StateDirective, OptionMenu, Jump]


# Containers -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Block:
    """A named, ordered sequence of nodes."""

    name: str
    nodes: Tuple[Node, ...] = ()
    line: int = 0


@dataclass(frozen=True, slots=True)
class Story:
    """Fully parsed story file."""

    file_id: str
    blocks: Mapping[str, Block] = field(default_factory=dict)
    entry_block: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.blocks, MappingProxyType):
            object.__setattr__(self, "blocks", MappingProxyType(dict(self.blocks)))

    def get_block(self, name: str) -> Block | None:
        return self.blocks.get(name)

    def block_names(self) -> list[str]:
        """Return block names in file order."""
        return list(self.blocks.keys())


def iter_text_runs(nodes: Tuple[Node, ...]):
    """Yield every TextRun in ``nodes``, descending into both conditional branches."""
    for node in nodes:
        if isinstance(node, TextRun):
            yield node
        elif isinstance(node, ConditionalBlock):
            yield from iter_text_runs(node.then_nodes)
            yield from iter_text_runs(node.else_nodes)


def narrative_text(story: Story) -> str:
    """Rebuild the narrative lines of a story with markup removed."""
    parts: list[str] = []
    for block in story.blocks.values():
        for run in iter_text_runs(block.nodes):
            parts.append(run.content)
            if run.ends_line:
                parts.append("\n")
    return "".join(parts)
