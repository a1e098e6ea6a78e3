"""
Pytest configuration for optimal_stopping_model.

Every test that touches results/ gets its own temporary results directory.
"""

import os

import numpy as np
import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

from optimal_stopping_model import config


@pytest.fixture
def results_dir(tmp_path, monkeypatch):
    """Redirect results_root() to a temporary directory."""
    root = tmp_path / "results"
    monkeypatch.setenv(config.RESULTS_DIR_ENV, str(root))
    return root


@pytest.fixture
def rng():
    return np.random.default_rng(20240601)


@pytest.fixture
def log_sink():
    """Collects (level, message) pairs from the logger_info/logger_warn hooks."""
    messages = []

    class Sink:
        records = messages

        @staticmethod
        def info(msg):
            messages.append(("INFO", msg))

        @staticmethod
        def warn(msg):
            messages.append(("WARN", msg))

    return Sink
