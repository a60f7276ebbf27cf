"""Shared fixtures for hm tests."""

from pathlib import Path

import pytest

HM_ENV_VARS = [
    "HM_API_KEY",
    "HM_API_ENDPOINT",
    "HM_API_VERSION",
    "HM_DEPLOYMENT",
    "HM_DEPLOYMENT_ID",
    "HM_SYSTEM_PROMPT",
]


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every test with an empty home directory, no HM_* variables and a clean cwd."""
    home = tmp_path / "home"
    home.mkdir()
    workdir = tmp_path / "work"
    workdir.mkdir()

    monkeypatch.setenv("HOME", str(home))
    for name in HM_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(workdir)
    return home
