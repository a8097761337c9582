"""Shared fixtures: a throwaway project directory and fake tools on PATH."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import generate_docs  # noqa: E402

FAKE_TOOL = """#!/bin/sh
case "$1" in
    --version|-v) echo "{name} 1.0.0"; exit 0;;
esac
printf '%s\\n' "$*" >> "{calls}"
echo "{name} ran"
exit {exit_code}
"""


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    for handler in list(generate_docs.LOGGER.handlers):
        generate_docs.LOGGER.removeHandler(handler)
    generate_docs.LOGGER.setLevel(logging.NOTSET)


@pytest.fixture
def bin_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    monkeypatch.setenv("PATH", str(path))
    return path


@pytest.fixture
def make_tool(bin_dir: Path):
    """Install an executable shell script that records its arguments."""

    def _make(name: str, exit_code: int = 0) -> Path:
        calls = bin_dir / f"{name}.calls"
        script = bin_dir / name
        script.write_text(FAKE_TOOL.format(name=name, calls=calls, exit_code=exit_code))
        script.chmod(0o755)
        return calls

    return _make


@pytest.fixture
def project(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def config(project: Path) -> generate_docs.DocsConfig:
    return generate_docs.load_docs_config(project)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Unset variables the pipeline writes so monkeypatch restores them afterwards."""
    for name in ("NODE_ENV", "DOCS_TITLE"):
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def info_logs(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    caplog.set_level(logging.INFO, logger="generate_docs")
    return caplog
