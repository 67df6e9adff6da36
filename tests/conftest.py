"""
Shared pytest fixtures.

The event bus is a QObject, so a session-scoped QCoreApplication is
created before any test builds one.  The offscreen platform keeps the
suite headless.
"""

from __future__ import annotations

import os
import sys

import pytest

# Force Qt to run without a display before any Qt import happens.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Embedding table used by the end-to-end example.
EXAMPLE_EMBEDDINGS = {
    "box": [0.8, 0.1, 0.2],
    "rectangle": [0.79, 0.12, 0.18],
    "tikz": [0.5, 0.5, 0.1],
}


@pytest.fixture(scope="session")
def qapp():
    """One QCoreApplication for the entire test session."""
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    yield app


@pytest.fixture
def bus(qapp):
    """Fresh EventBus for each test."""
    from autoconfig.events import EventBus

    return EventBus()


@pytest.fixture
def example_embeddings():
    return {term: list(vec) for term, vec in EXAMPLE_EMBEDDINGS.items()}
