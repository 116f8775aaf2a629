"""
Shared test configuration for backend tests.

Adds the backend directory to sys.path so `import dayhoff` works without an
editable install, and provides common fixtures.
"""
import os
import sys

import pytest

backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)


@pytest.fixture
def store():
    from dayhoff.progress_store import InMemoryProgressStore
    return InMemoryProgressStore()


@pytest.fixture
def engine(store):
    from dayhoff.progress_engine import MasteryProgressionEngine
    return MasteryProgressionEngine(store)
