import logging
from pathlib import Path

from _pytest.monkeypatch import MonkeyPatch
import pytest

from toolwire.config import ENV_MAP


@pytest.fixture(scope="session", autouse=True)
def _session_env(tmp_path_factory: pytest.TempPathFactory) -> None:
    """
    Session-level hermetic env: a private HOME so ~/.toolwire config files
    from the developer's machine never leak into tests.
    """
    home = tmp_path_factory.mktemp("home")
    mp = MonkeyPatch()
    mp.setenv("HOME", str(home))
    try:
        yield
    finally:
        mp.undo()


@pytest.fixture(autouse=True)
def hermetic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Autouse: each test runs in its own tmp cwd with no TOOLWIRE_* overrides.
    """
    monkeypatch.chdir(tmp_path)
    for env_var in ENV_MAP:
        monkeypatch.delenv(env_var, raising=False)
    return tmp_path


@pytest.fixture(autouse=True)
def restore_package_logger():
    """
    Autouse: undo setup_logging so handlers bound to captured streams never
    outlive a test and caplog keeps receiving package records.
    """
    logger = logging.getLogger("toolwire")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for handler in list(logger.handlers):
        if handler not in saved[0]:
            logger.removeHandler(handler)
            handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]
