"""
Per-project navigation for FractalTask.

Each project column shows one task at a time; the user drills into a
subtask and backs out again. The navigator keeps that stack of task ids and
knows how to repair it when tasks disappear from the tree.
"""

from typing import List
from uuid import UUID

from fractaltask.logging_config import get_logger
from fractaltask.models import Task, TreeState

logger = get_logger(__name__)


class NavigationError(Exception):
    """Raised when navigating to a task that is not a child of the current view."""
    pass


class ColumnNavigator:
    """Drill-down stack for one project, root first."""

    def __init__(self, root_id: UUID) -> None:
        self.root_id = root_id
        self._stack: List[UUID] = [root_id]

    @classmethod
    def open_at(cls, state: TreeState, path: List[UUID]) -> "ColumnNavigator":
        """
        Build a navigator already drilled down along a path.

        Args:
            state: Current snapshot
            path: Task ids from the project root down to the task to show

        Raises:
            NavigationError: If the path is empty or does not follow parent/child links
        """
        if not path:
            raise NavigationError("Navigation path is empty")
        navigator = cls(path[0])
        for task_id in path[1:]:
            navigator.push(state, task_id)
        return navigator

    @property
    def stack(self) -> List[UUID]:
        """Copy of the stack, root first."""
        return list(self._stack)

    @property
    def current_id(self) -> UUID:
        """Task currently shown."""
        return self._stack[-1]

    @property
    def is_root_view(self) -> bool:
        return len(self._stack) == 1

    def push(self, state: TreeState, child_id: UUID) -> UUID:
        """
        Drill into a child of the current task.

        Args:
            state: Current snapshot
            child_id: Child to show

        Returns:
            The new current id

        Raises:
            NavigationError: If child_id is not a child of the current task
        """
        current = state.get(self.current_id)
        if current is None or child_id not in current.children:
            raise NavigationError(f"Task {child_id} is not a child of {self.current_id}")
        self._stack.append(child_id)
        logger.debug(f"Navigated into {child_id} (depth {len(self._stack) - 1})")
        return child_id

    def back(self) -> UUID:
        """Go up one level; stays put at the project root."""
        if len(self._stack) > 1:
            self._stack.pop()
        return self.current_id

    def breadcrumbs(self, state: TreeState) -> List[Task]:
        """Tasks on the stack, root first."""
        return [state.tasks[task_id] for task_id in self._stack if task_id in state.tasks]

    def prune(self, state: TreeState) -> bool:
        """
        Drop stack entries that no longer exist or no longer nest.

        Args:
            state: Current snapshot

        Returns:
            False if the project root itself is gone, True otherwise
        """
        if self.root_id not in state.tasks:
            return False

        kept = [self.root_id]
        for task_id in self._stack[1:]:
            task = state.tasks.get(task_id)
            if task is None or task.parent_id != kept[-1]:
                break
            kept.append(task_id)

        if len(kept) != len(self._stack):
            logger.debug(f"Navigation stack pruned from {len(self._stack)} to {len(kept)} entries")
        self._stack = kept
        return True
