"""Registry of parsed story files."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping

from intfic.data import paths
from intfic.data.errors import DataError, ResolutionError
from intfic.data.markup_parser import MarkupParser
from intfic.data.story_loader import load_text
from intfic.domain.defs import Block, BlockRef, Destination, FileRef, Story

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedBlock:
    """A destination after lookup: the owning file plus the block itself."""

    file_id: str
    block: Block


class StoryRegistry:
    """Parses story files and caches them by file id.

    Stories are immutable once parsed. Loading an id again re-parses it and
    swaps in a new mapping, so readers holding the old mapping never see a
    half-replaced entry. When ``base_path`` is given, unknown ids are read from
    that directory on first use.
    """

    def __init__(self, parser: MarkupParser | None = None, base_path: Path | str | None = None) -> None:
        self._parser = parser or MarkupParser()
        self._base_path = Path(base_path) if base_path is not None else None
        self._stories: Mapping[str, Story] = {}

    @property
    def base_path(self) -> Path | None:
        return self._base_path

    def load(self, file_id: str, raw_text: str) -> Story:
        """Parse ``raw_text`` and register it under ``file_id``.

        A ParseError leaves any earlier registration of ``file_id`` untouched.
        """
        story = self._parser.parse(raw_text, file_id)
        replaced = file_id in self._stories
        stories: Dict[str, Story] = dict(self._stories)
        stories[file_id] = story
        self._stories = stories
        logger.info("%s story '%s' (%d blocks)", "Reloaded" if replaced else "Loaded", file_id, len(story.blocks))
        return story

    def load_file(self, file_id: str) -> Story:
        """Read ``file_id`` from the stories directory and register it."""
        path = paths.get_stories_path(self._base_path) / file_id
        return self.load(file_id, load_text(path))

    def get(self, file_id: str) -> Story:
        """Return a registered story, loading it from disk when possible."""
        story = self._stories.get(file_id)
        if story is not None:
            return story
        if self._base_path is None:
            raise ResolutionError(f"Unknown story file '{file_id}'", file_id=file_id)
        try:
            return self.load_file(file_id)
        except DataError as exc:
            raise ResolutionError(f"Could not load story file '{file_id}': {exc}", file_id=file_id) from exc

    def resolve(self, destination: Destination, current_file: str) -> ResolvedBlock:
        """Look up the block a destination points at."""
        if isinstance(destination, BlockRef):
            file_id, block_name = current_file, destination.block
        elif isinstance(destination, FileRef):
            file_id, block_name = destination.file, destination.block
        else:
            raise TypeError(f"Unsupported destination: {destination!r}")

        story = self.get(file_id)
        if block_name is None:
            block_name = story.entry_block
            if block_name is None:
                raise ResolutionError(f"Story file '{file_id}' has no entry block", file_id=file_id)
        block = story.get_block(block_name)
        if block is None:
            raise ResolutionError(
                f"Story file '{file_id}' has no block named '{block_name}'", file_id=file_id, block=block_name
            )
        return ResolvedBlock(file_id=file_id, block=block)

    def file_ids(self) -> list[str]:
        """Return registered file ids sorted deterministically."""
        return sorted(self._stories.keys())

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._stories
