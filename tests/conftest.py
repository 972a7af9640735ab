from __future__ import annotations

from typing import Callable, Dict, List, Tuple

import pytest

from intfic.data.repositories import StoryRegistry
from intfic.domain.state import GameState
from intfic.services import StoryEngine


class RecordingOutput:
    """Collects render calls instead of painting them."""

    def __init__(self) -> None:
        self.runs: List[Tuple[str, str | None]] = []
        self.lines: List[str] = []
        self._pending: List[str] = []

    def render(self, text: str, color: str | None) -> None:
        self.runs.append((text, color))
        self._pending.append(text)

    def end_line(self) -> None:
        self.lines.append("".join(self._pending))
        self._pending = []

    @property
    def texts(self) -> List[str]:
        return [text for text, _ in self.runs]


EngineFactory = Callable[..., StoryEngine]


@pytest.fixture
def output() -> RecordingOutput:
    return RecordingOutput()


@pytest.fixture
def make_engine(output: RecordingOutput) -> EngineFactory:
    def _make(files: Dict[str, str], state: GameState | None = None) -> StoryEngine:
        registry = StoryRegistry()
        for file_id, text in files.items():
            registry.load(file_id, text)
        return StoryEngine(registry, state if state is not None else GameState(), output)

    return _make
