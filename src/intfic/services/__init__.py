"""Service layer exports."""

from .errors import DestinationError, EngineError, InputError
from .story_engine import (
    AwaitingChoice,
    EngineStatus,
    Halted,
    Running,
    StoryEngine,
    StoryOutput,
)

__all__ = [
    "AwaitingChoice",
    "DestinationError",
    "EngineError",
    "EngineStatus",
    "Halted",
    "InputError",
    "Running",
    "StoryEngine",
    "StoryOutput",
]
