"""
Global pytest fixtures for roxy tests
"""

from pathlib import Path

import pytest

from roxy.core.config import Settings


@pytest.fixture
def workspace(tmp_path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def settings(tmp_path, workspace) -> Settings:
    return Settings(
        base_url="https://llm.test/v1",
        api_key="sk-test",
        model="test-model",
        workspace=workspace,
        session_dir=tmp_path / "sessions",
        data_dir=tmp_path / "data",
    )
