"""Test helper utilities for FractalTask tests."""

from tests.helpers.tree_helpers import (
    assert_consistent,
    completed,
    snapshot_flags,
)

__all__ = [
    "assert_consistent",
    "completed",
    "snapshot_flags",
]
