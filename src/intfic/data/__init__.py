"""Data layer utilities for loading and parsing story files."""

from .errors import DataError, DataLoadError, ParseError, ResolutionError
from .markup_parser import Grammar, MarkupParser, parse_story
from .paths import get_repo_root, get_stories_path

__all__ = [
    "DataError",
    "DataLoadError",
    "Grammar",
    "MarkupParser",
    "ParseError",
    "ResolutionError",
    "get_repo_root",
    "get_stories_path",
    "parse_story",
]
