"""Shared pytest fixtures and test helpers for repoinit tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from repoinit.config.settings import RepoinitSettings
from repoinit.infrastructure.repository import Repository, RepositorySession


@pytest.fixture(autouse=True)
def _no_ambient_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's REPOINIT_* environment out of the tests."""
    monkeypatch.delenv("REPOINIT_CONFIG", raising=False)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def repository_root(tmp_path: Path) -> Path:
    """Temporary repository directory (``.repoinit/`` is created on open)."""
    return tmp_path


@pytest.fixture
def settings(repository_root: Path) -> RepoinitSettings:
    return RepoinitSettings.from_cli(repository_root=repository_root)


@pytest.fixture
def repository(settings: RepoinitSettings) -> Iterator[Repository]:
    """Fully initialized repository with built-in namespaces and node types."""
    repo = Repository(settings)
    try:
        yield repo
    finally:
        repo.dispose()


@pytest.fixture
def session(repository: Repository) -> Iterator[RepositorySession]:
    """An open session; anything not committed is discarded afterwards."""
    with repository.session() as s:
        yield s


@pytest.fixture
def _isolated_repository(repository_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp directory so the CLI opens an isolated repository.

    Use via ``@pytest.mark.usefixtures("_isolated_repository")`` on command
    test classes.
    """
    monkeypatch.chdir(repository_root)


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def apply_script(repository: Repository, text: str) -> dict:
    """Apply *text* via ProvisionService, asserting success."""
    from repoinit.services.provision import ProvisionService

    result = ProvisionService(repository).apply(text)
    assert result.ok, result.error
    return result.data
