"""Test configuration and fixtures for framework tests."""

import io
import os
import shutil
import tempfile
from pathlib import Path

import pytest

from specstorm.core import config
from specstorm.core.types import SpecstormConfig


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp(prefix="specstorm_test_"))
    try:
        yield temp_path
    finally:
        if temp_path.exists():
            shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fast_config():
    """Configuration with a short poll interval."""
    return SpecstormConfig(worker_processes=2, duration=1, poll_interval=0.01)


@pytest.fixture
def sinks():
    """In-memory stdout/stderr sinks."""
    return io.StringIO(), io.StringIO()


@pytest.fixture(autouse=True)
def clean_specstorm_environment():
    """Hide SPECSTORM_* variables of the calling shell from tests."""
    saved = {key: value for key, value in os.environ.items() if key.startswith("SPECSTORM_")}
    for key in saved:
        del os.environ[key]
    config._config_manager.reset()
    try:
        yield
    finally:
        for key in [key for key in os.environ if key.startswith("SPECSTORM_")]:
            del os.environ[key]
        os.environ.update(saved)
        config._config_manager.reset()
