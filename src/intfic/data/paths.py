"""Helpers for resolving story file locations."""
from __future__ import annotations

import os
from pathlib import Path

STORIES_ENV_VAR = "INTFIC_STORIES"


def get_repo_root() -> Path:
    """Return the repository root."""
    return Path(__file__).resolve().parents[3]


def get_stories_path(base_path: Path | str | None = None) -> Path:
    """Return the directory containing story files."""
    if base_path is not None:
        return Path(base_path)
    override = os.getenv(STORIES_ENV_VAR)
    if override:
        return Path(override)
    return get_repo_root() / "stories"
