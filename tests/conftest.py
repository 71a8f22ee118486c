from __future__ import annotations

import pytest

from engrain.settings import ENV_ENGRAIN_DIR, ENV_OUTPUT


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENV_OUTPUT, raising=False)
    monkeypatch.delenv(ENV_ENGRAIN_DIR, raising=False)
