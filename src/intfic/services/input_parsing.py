"""Reader input helpers: sanitising, option matching and simple questions."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional, Sequence, TypeVar

from intfic.domain.defs import BlockRef, ColorTag, FileRef, Option

logger = logging.getLogger(__name__)


class Answer(Enum):
    YES = "yes"
    NO = "no"
    UNSURE = "unsure"


class Direction(Enum):
    NORTH = "north"
    EAST = "east"
    SOUTH = "south"
    WEST = "west"
    UP = "up"
    DOWN = "down"
    RETURN = "return"


AFFIRMATIVES: FrozenSet[str] = frozenset(
    {
        "104", "affirmative", "alright", "aye", "ok", "okay", "please", "positive", "sure", "y",
        "yay", "ye", "yeah", "yeah ok", "yeah sure", "yep", "yes", "yes please", "yup",
    }
)
NEGATIVES: FrozenSet[str] = frozenset(
    {
        "n", "nah", "nay", "negative", "never", "no", "nope", "no please", "not ok", "not okay",
        "no way",
    }
)
UNSURATIVES: FrozenSet[str] = frozenset(
    {
        "dunno", "huh", "idk", "i dont know", "i dunno", "i guess", "maybe", "no clue", "no idea",
        "not sure", "shrug", "unsure", "what",
    }
)
EXITS: FrozenSet[str] = frozenset({"exit", "exit game", "quit", "quit game"})

_DIRECTION_WORDS: dict[Direction, FrozenSet[str]] = {
    Direction.NORTH: frozenset({"forward", "go forward", "go north", "n", "north", "northbound", "northward"}),
    Direction.EAST: frozenset({"e", "east", "eastbound", "eastward", "go east", "go right", "right"}),
    Direction.SOUTH: frozenset({"backward", "go backward", "go south", "s", "south", "southbound", "southward"}),
    Direction.WEST: frozenset({"go left", "go west", "left", "w", "west", "westbound", "westward"}),
    Direction.UP: frozenset({"ascend", "climb", "climb up", "fly", "fly up", "go up", "rise", "u", "up"}),
    Direction.DOWN: frozenset({"climb down", "d", "descend", "down", "fall", "glide", "go down"}),
    Direction.RETURN: frozenset(
        {"b", "back", "fall back", "go back", "r", "retreat", "return", "run", "run away"}
    ),
}

VOCABULARIES: Dict[str, FrozenSet[str]] = {
    "AFFIRMATIVES": AFFIRMATIVES,
    "NEGATIVES": NEGATIVES,
    "UNSURATIVES": UNSURATIVES,
    "NORTHS": _DIRECTION_WORDS[Direction.NORTH],
    "EASTS": _DIRECTION_WORDS[Direction.EAST],
    "SOUTHS": _DIRECTION_WORDS[Direction.SOUTH],
    "WESTS": _DIRECTION_WORDS[Direction.WEST],
    "UPS": _DIRECTION_WORDS[Direction.UP],
    "DOWNS": _DIRECTION_WORDS[Direction.DOWN],
    "RETURNS": _DIRECTION_WORDS[Direction.RETURN],
}

UNRECOGNISED_MESSAGE = "I didn't understand that."


def sanitize(text: str) -> str:
    """Keep letters, digits and spaces; collapse runs of spaces; lowercase."""
    kept = "".join(char for char in text if char.isalnum() or char == " ")
    return " ".join(kept.split()).lower()


def is_exit_command(raw: str) -> bool:
    return sanitize(raw) in EXITS


def match_option(raw: str, options: Sequence[Option]) -> int | None:
    """Return the zero-based index of the option the reader typed, if any.

    Tried in order: the option label, the 1-based number shown next to the
    option, the option keywords, then the name of the block it leads to. A
    label made of digits therefore wins over the menu number it spells.
    """
    cleaned = sanitize(raw)
    if not cleaned:
        return None
    for index, option in enumerate(options):
        if sanitize(option.label) == cleaned:
            return index
    if cleaned.isdigit():
        number = int(cleaned)
        if 1 <= number <= len(options):
            return number - 1
    for index, option in enumerate(options):
        if any(_keyword_matches(keyword, cleaned) for keyword in option.keywords):
            return index
    for index, option in enumerate(options):
        if _destination_name(option) == cleaned:
            return index
    return None


def _keyword_matches(keyword: str, cleaned: str) -> bool:
    if keyword.startswith("@"):
        return cleaned in VOCABULARIES.get(keyword[1:], frozenset())
    return cleaned in sanitize(keyword)


def _destination_name(option: Option) -> str | None:
    destination = option.destination
    if isinstance(destination, BlockRef):
        return sanitize(destination.block)
    if isinstance(destination, FileRef) and destination.block:
        return sanitize(destination.block)
    return None


def parse_answer(raw: str) -> Answer | None:
    cleaned = sanitize(raw)
    if cleaned in AFFIRMATIVES:
        answer = Answer.YES
    elif cleaned in NEGATIVES:
        answer = Answer.NO
    elif cleaned in UNSURATIVES:
        answer = Answer.UNSURE
    else:
        answer = None
    logger.debug("Input: %s, Parsed: %s", cleaned, answer)
    return answer


def parse_direction(raw: str) -> Direction | None:
    cleaned = sanitize(raw)
    for direction, words in _DIRECTION_WORDS.items():
        if cleaned in words:
            logger.debug("Input: %s, Parsed: %s", cleaned, direction)
            return direction
    logger.debug("Input: %s, Parsed: None", cleaned)
    return None


Reader = Callable[[], str]
Writer = Callable[[str, Optional[ColorTag]], None]
_T = TypeVar("_T")


def ask_question(question: str, read: Reader, write: Writer) -> Answer | None:
    """Ask a yes/no question until it is answered; None when the reader exits."""
    return _ask(question, read, write, parse_answer)


def ask_direction(question: str, read: Reader, write: Writer) -> Direction | None:
    """Ask for a direction until one is recognised; None when the reader exits."""
    return _ask(question, read, write, parse_direction)


def _ask(question: str, read: Reader, write: Writer, parse: Callable[[str], Optional[_T]]) -> Optional[_T]:
    while True:
        write(question, "cyan")
        raw = read()
        if is_exit_command(raw):
            return None
        if not sanitize(raw):
            continue
        parsed = parse(raw)
        if parsed is not None:
            return parsed
        write(UNRECOGNISED_MESSAGE, None)
