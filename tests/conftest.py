import pytest
import logging
import os
import sys

# Add the project root to the path so we can import from the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from meter_ocr.core.config import LearningConfig
from meter_ocr.learning.coordinator import LearningCoordinator
from meter_ocr.storage.memory import InMemoryStore
from meter_ocr.storage.sqlite import SQLiteStore


@pytest.fixture
def test_logger():
    """Create a logger for testing."""
    logger = logging.getLogger("test_logger")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "learning.sqlite3")


@pytest.fixture
def sqlite_store(db_path):
    store = SQLiteStore(db_path)
    yield store
    store.close()


@pytest.fixture
def coordinator(memory_store, test_logger):
    """Initialized coordinator backed by an in-memory store."""
    coordinator = LearningCoordinator(memory_store, config=LearningConfig(), logger=test_logger)
    coordinator.initialize()
    return coordinator
