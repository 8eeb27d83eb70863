from __future__ import annotations

import os
from pathlib import Path

import pytest

from toolrelay.config import Settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in list(os.environ):
        if key.startswith("TOOLRELAY_"):
            monkeypatch.delenv(key)
    # Settings read an optional .env from the working directory.
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="sk-test", api_base="https://llm.test/v1", model="test/model")
