"""Domain definition exports."""

from .story_def import (
    COLOR_TAGS,
    And,
    Block,
    BlockRef,
    ColorTag,
    ConditionalBlock,
    CounterCompare,
    Destination,
    FileRef,
    FlagTest,
    Jump,
    Node,
    Not,
    Option,
    OptionMenu,
    Or,
    Predicate,
    StateDirective,
    Story,
    TextRun,
    VOCABULARY_NAMES,
    iter_text_runs,
    narrative_text,
)

__all__ = [
    "COLOR_TAGS",
    "And",
    "Block",
    "BlockRef",
    "ColorTag",
    "ConditionalBlock",
    "CounterCompare",
    "Destination",
    "FileRef",
    "FlagTest",
    "Jump",
    "Node",
    "Not",
    "Option",
    "OptionMenu",
    "Or",
    "Predicate",
    "StateDirective",
    "Story",
    "TextRun",
    "VOCABULARY_NAMES",
    "iter_text_runs",
    "narrative_text",
]
