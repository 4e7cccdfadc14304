"""Shared pytest fixtures."""

import pytest


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep every test away from the real home directory and credentials."""
    monkeypatch.setenv("CMDGEN_CONFIG_DIR", str(tmp_path / "config"))
    for variable in ("CMDGEN_API_KEY", "CMDGEN_API_BASE", "CMDGEN_MODEL"):
        monkeypatch.delenv(variable, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
