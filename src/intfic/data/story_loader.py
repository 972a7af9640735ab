"""Low-level text helpers for reading story files."""
from __future__ import annotations

from pathlib import Path

from .errors import DataLoadError


def load_text(path: Path) -> str:
    """Read a UTF-8 story file and raise DataLoadError on failure."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise DataLoadError(f"Story file not found: {path}") from exc
    except UnicodeDecodeError as exc:
        raise DataLoadError(f"Story file is not valid UTF-8: {path}") from exc
    except OSError as exc:
        raise DataLoadError(f"Unable to read story file: {path}") from exc
