"""Domain-level state tracking."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

SCORE_COUNTER = "score"
GAME_OVER_FLAG = "game_over"


@dataclass
class GameState:
    """Flags and counters shared by every block of a running story.

    Unset flags read as False and unset counters read as 0, so story files can
    query names that were never written.
    """

    name: str = "Interactive Fiction"
    flags: Dict[str, bool] = field(default_factory=dict)
    counters: Dict[str, int] = field(default_factory=dict)
    progress: Tuple[str, str] = ("", "")

    def get_flag(self, name: str) -> bool:
        return self.flags.get(name, False)

    def set_flag(self, name: str, value: bool = True) -> None:
        self.flags[name] = bool(value)

    def get_counter(self, name: str) -> int:
        return self.counters.get(name, 0)

    def adjust_counter(self, name: str, delta: int) -> None:
        self.counters[name] = self.get_counter(name) + delta

    def set_counter(self, name: str, value: int) -> None:
        self.counters[name] = value

    def add_score(self, amount: int) -> None:
        """Adjust the conventional score counter."""
        self.adjust_counter(SCORE_COUNTER, amount)

    def is_game_over(self) -> bool:
        return self.get_flag(GAME_OVER_FLAG)

    def set_progress(self, file_id: str, block: str) -> None:
        """Record the story file and block currently being played."""
        self.progress = (file_id, block)

    def snapshot(self) -> Tuple[Dict[str, bool], Dict[str, int]]:
        """Return copies of the flags and counters for later comparison."""
        return dict(self.flags), dict(self.counters)

    def describe(self) -> str:
        """Return a multi-line debug summary of the state."""
        story, block = self.progress
        return (
            f"  Name: {self.name}\n"
            f"  Progress: [Story: {story}, Block: {block}]\n"
            f"  Flags: {dict(sorted(self.flags.items()))}\n"
            f"  Counters: {dict(sorted(self.counters.items()))}\n"
        )
