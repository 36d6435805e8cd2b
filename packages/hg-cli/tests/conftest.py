"""Shared test fixtures for hg-cli tests.

Provides CliRunner fixtures and a context file isolated per test.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from click.testing import CliRunner
import pytest
import yaml

AVS_ADDRESS = "0x1234567890123456789012345678901234567890"
RELEASE_MANAGER_ADDRESS = "0xd9cb89f1993292dec2f973934bc63b0f2a702776"
RPC_URL = "http://localhost:8545"


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click test runner.

    Returns:
        CliRunner instance for testing CLI commands.
    """
    return CliRunner()


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HGCTL_CONFIG at a per-test context file that does not exist yet."""
    path = tmp_path / "hgctl" / "config.yaml"
    monkeypatch.setenv("HGCTL_CONFIG", str(path))
    return path


@pytest.fixture
def write_config(config_path: Path) -> Callable[[dict[str, Any]], Path]:
    """Factory fixture that writes raw YAML data to the context file."""

    def _write(data: dict[str, Any]) -> Path:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(yaml.safe_dump(data))
        return config_path

    return _write


@pytest.fixture
def configured_context(write_config: Callable[[dict[str, Any]], Path]) -> Path:
    """Context file whose default context can reach a registry."""
    return write_config(
        {
            "currentContext": "default",
            "contexts": {
                "default": {
                    "rpcUrl": RPC_URL,
                    "releaseManagerAddress": RELEASE_MANAGER_ADDRESS,
                    "operatorSetId": 2,
                }
            },
        }
    )
