"""
Pytest configuration and fixtures for FractalTask tests.

Provides database fixtures, prebuilt task trees, and common test utilities.
"""

from types import SimpleNamespace

import pytest
import pytest_asyncio

from fractaltask.database import DatabaseManager
from fractaltask.models import TreeState
from fractaltask.services.task_engine import TaskGraphEngine
from fractaltask.services.tree_store import SqliteTreeStore


@pytest_asyncio.fixture
async def db_manager():
    """
    Create an in-memory SQLite database for testing.

    Yields:
        DatabaseManager instance with in-memory database
    """
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.initialize()

    yield manager

    await manager.close()


@pytest_asyncio.fixture
async def sqlite_store(db_manager):
    """SqliteTreeStore on the in-memory database."""
    return SqliteTreeStore(db_manager)


class MemoryStore:
    """In-memory TreeStore that records every save."""

    def __init__(self, initial: TreeState = None):
        self.initial = initial
        self.saved = []

    async def load(self):
        return self.initial

    async def save(self, state):
        self.saved.append(state)


@pytest.fixture
def memory_store():
    """Empty in-memory store (load returns None)."""
    return MemoryStore()


@pytest.fixture
def make_memory_store():
    """Factory for in-memory stores preloaded with a snapshot."""
    def _make(initial: TreeState = None) -> MemoryStore:
        return MemoryStore(initial)
    return _make


@pytest.fixture
def engine():
    """Engine seeded with the default project."""
    return TaskGraphEngine.with_default_project()


@pytest.fixture
def chain_tree():
    """
    Three-level chain.

    Creates:
        R
        - M
          - L
    """
    engine = TaskGraphEngine()
    r = engine.create_root("R")
    m = engine.create(r, "M")
    leaf = engine.create(m, "L")
    return SimpleNamespace(engine=engine, r=r, m=m, l=leaf)


@pytest.fixture
def sibling_tree():
    """
    Root with two incomplete leaves.

    Creates:
        R
        - A
        - B
    """
    engine = TaskGraphEngine()
    r = engine.create_root("R")
    a = engine.create(r, "A")
    b = engine.create(r, "B")
    return SimpleNamespace(engine=engine, r=r, a=a, b=b)


@pytest.fixture
def deep_tree():
    """
    Two projects with a mixed hierarchy.

    Creates:
        P1
        - A
          - A1
          - A2
            - A2x
        - B
        P2
        - C
    """
    engine = TaskGraphEngine()
    p1 = engine.create_root("P1")
    a = engine.create(p1, "A")
    a1 = engine.create(a, "A1")
    a2 = engine.create(a, "A2")
    a2x = engine.create(a2, "A2x")
    b = engine.create(p1, "B")
    p2 = engine.create_root("P2")
    c = engine.create(p2, "C")
    return SimpleNamespace(
        engine=engine, p1=p1, a=a, a1=a1, a2=a2, a2x=a2x, b=b, p2=p2, c=c
    )
