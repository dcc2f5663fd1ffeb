from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Provides a reusable Click CLI runner."""
    return CliRunner()


@pytest.fixture()
def write_rules(tmp_path: Path) -> Callable[..., Path]:
    """Writes a standalone TOML rule set and returns its path."""

    def _write_rules(body: str, filename: str = "rules.toml") -> Path:
        path = tmp_path / filename
        path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
        return path

    return _write_rules
