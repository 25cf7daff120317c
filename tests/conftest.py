import pytest
from typer.testing import CliRunner
from unittest.mock import MagicMock

from asyncutils.domain.interfaces.user_interface import UserInterface
from asyncutils.infrastructure.config import settings


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests away from the user's real config file, .env and ASYNCUTILS_* variables."""
    for key in list(settings.DEFAULTS):
        monkeypatch.delenv(settings.env_var_name(key), raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(settings, "DEFAULT_CONFIG_FILE", tmp_path / "missing.yaml")
    settings.load_configuration(config_file=tmp_path / "missing.yaml", force=True)
    settings.clear_test_config()
    yield
    settings.clear_test_config()
