"""
tests/conftest.py
-----------------
Shared fixtures. No live database is needed for any test.
"""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from fakes import FakeEngine, make_manager, make_rows


@pytest.fixture
def source_engine() -> FakeEngine:
    return FakeEngine({"users": make_rows(3), "orders": []}, host="source-db")


@pytest.fixture
def target_engine() -> FakeEngine:
    return FakeEngine({"users": [], "customers": []}, host="target-db")


@pytest.fixture
def manager(source_engine: FakeEngine, target_engine: FakeEngine) -> MagicMock:
    return make_manager(source_engine, target_engine)
