import pytest

from src.matching.config import MatchingConfig, reset_config
from src.matching.scoring import Matcher


@pytest.fixture
def config() -> MatchingConfig:
    return MatchingConfig(_env_file=None)


@pytest.fixture
def matcher(config) -> Matcher:
    return Matcher(config)


@pytest.fixture(autouse=True)
def _fresh_config_singleton():
    reset_config()
    yield
    reset_config()
