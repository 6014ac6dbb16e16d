import logging
import os

import pytest

from core.config import ENV_PREFIX


@pytest.fixture(autouse=True)
def _isolate_vault_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep VAULT_* variables from the developer's shell out of config loading."""
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX) and name != "VAULT_VERSION":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """CLI tests reconfigure the root logger onto streams that close afterwards."""
    root = logging.getLogger()
    level = root.level
    yield
    for h in list(root.handlers):
        if type(h) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(h)
    root.setLevel(level)
