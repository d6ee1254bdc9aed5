"""
Pytest configuration and fixtures for framework unit tests.

Unit tests never signal real processes.
"""

from typing import Generator
from unittest.mock import patch

import pytest

from specstorm.core.log import shutdown_logging


@pytest.fixture(autouse=True)
def cleanup_logging() -> Generator[None, None, None]:
    """Detach handlers installed by CLI callbacks."""
    yield
    shutdown_logging()


@pytest.fixture(autouse=True)
def no_real_signals() -> Generator[None, None, None]:
    """Patch os.kill so a stray pid in a test can never be signalled."""
    with patch("specstorm.core.process.os.kill") as mock_kill:
        yield mock_kill
