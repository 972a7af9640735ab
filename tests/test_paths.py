from pathlib import Path

from intfic.data import paths


def test_get_stories_path_base_path(tmp_path: Path) -> None:
    assert paths.get_stories_path(tmp_path) == tmp_path
    assert paths.get_stories_path(str(tmp_path)) == tmp_path


def test_get_stories_path_source_repo_exists(monkeypatch) -> None:
    monkeypatch.delenv(paths.STORIES_ENV_VAR, raising=False)
    stories_path = paths.get_stories_path()
    assert stories_path.name == "stories"
    assert stories_path.exists()


def test_get_stories_path_env_override(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv(paths.STORIES_ENV_VAR, str(tmp_path))
    assert paths.get_stories_path() == tmp_path


def test_explicit_base_path_beats_env_override(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv(paths.STORIES_ENV_VAR, "/somewhere/else")
    assert paths.get_stories_path(tmp_path) == tmp_path
