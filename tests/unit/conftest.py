import os
import sys
from pathlib import Path
from typing import Generator

import dotenv
import pytest

from segmented_transfer.config import Config


sys.path.insert(0, str(Path(__file__).parent))

from mocks.mock_object_store import InMemoryObjectStore  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _load_test_env() -> Generator[None, None, None]:
    """Load test environment variables from base + local env files."""
    project_root = Path(__file__).parents[2]
    dotenv.load_dotenv(project_root / ".env.defaults", override=True)
    dotenv.load_dotenv(project_root / ".env.test-local", override=True)
    os.environ["ENVIRONMENT"] = "test"
    yield


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def make_config():
    def _make(**overrides) -> Config:
        cfg = Config()
        for key, value in overrides.items():
            setattr(cfg, key, value)
        return cfg

    return _make
