"""Repository exports."""

from .story_repo import ResolvedBlock, StoryRegistry

__all__ = [
    "ResolvedBlock",
    "StoryRegistry",
]
