"""Shared test fixtures for unit tests."""

import subprocess
from typing import List

import psutil
import pytest

from procguard.core.config import clear_config_cache


@pytest.fixture
def process_tree():
    """Start ``sh`` with two sleeping children; kills anything left afterwards."""
    started: List[subprocess.Popen] = []

    def _start(script: str = "sleep 30 & sleep 30 & wait") -> subprocess.Popen:
        proc = subprocess.Popen(["sh", "-c", script])
        started.append(proc)
        return proc

    yield _start

    for proc in started:
        try:
            for child in psutil.Process(proc.pid).children(recursive=True):
                child.kill()
        except psutil.NoSuchProcess:
            pass
        proc.kill()
        proc.wait(timeout=5)


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    clear_config_cache()
    yield
    clear_config_cache()
