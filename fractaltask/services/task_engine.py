"""
Task graph engine for FractalTask.

Owns the task forest and implements the four mutating operations (create,
toggle completion, edit fields, delete) together with the completion
cascades that keep parent and child state consistent:

- a task with children is completed exactly when all its children are;
- toggling a task forces its whole subtree to the new value;
- ancestor state is recomputed bottom-up, stopping at the first ancestor
  whose value does not change.

Every operation validates its input before touching anything, so it either
fails cleanly or applies its whole cascade. Each successful mutation swaps in
a new immutable TreeState; unchanged Task records are shared between the old
and the new snapshot.
"""

from typing import Dict, List, Optional, Tuple
from uuid import UUID

from fractaltask.logging_config import get_logger
from fractaltask.models import (
    DEFAULT_PROJECT_TITLE,
    MAX_TITLE_LENGTH,
    NEW_PROJECT_TITLE,
    Task,
    TreeState,
)

logger = get_logger(__name__)


class TaskEngineError(Exception):
    """Base exception for task engine errors."""
    pass


class TaskNotFoundError(TaskEngineError):
    """Raised when a task is not found."""
    pass


class InvalidTitleError(TaskEngineError):
    """Raised when a title is empty after trimming or too long."""
    pass


class TaskGraphEngine:
    """
    Single authority over the task forest.

    All operations are synchronous and run to completion; callers only ever
    see whole snapshots through ``state``.
    """

    def __init__(self, state: Optional[TreeState] = None) -> None:
        """
        Initialize the engine with an existing snapshot.

        Args:
            state: Snapshot to start from (assumed valid, see
                tree_validation.validate_tree); an empty forest if omitted
        """
        self._state = state if state is not None else TreeState()

    @classmethod
    def with_default_project(cls, title: str = DEFAULT_PROJECT_TITLE) -> "TaskGraphEngine":
        """Create an engine seeded with a single empty root task."""
        engine = cls()
        engine.create_root(title)
        return engine

    @property
    def state(self) -> TreeState:
        """The current immutable snapshot."""
        return self._state

    # ==============================================================================
    # VALIDATION HELPERS
    # ==============================================================================

    def _get_task_or_raise(self, task_id: UUID) -> Task:
        """
        Get a task by ID or raise an exception.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task = self._state.tasks.get(task_id)
        if task is None:
            logger.warning(f"Task not found: id={task_id}")
            raise TaskNotFoundError(f"Task with id {task_id} not found")
        return task

    @staticmethod
    def _normalize_title(title: str) -> str:
        """
        Trim a title and check it is usable.

        Raises:
            InvalidTitleError: If the title is empty after trimming or too long
        """
        normalized = (title or "").strip()
        if not normalized:
            logger.warning("Rejected empty task title")
            raise InvalidTitleError("Task title cannot be empty")
        if len(normalized) > MAX_TITLE_LENGTH:
            logger.warning(f"Rejected task title of length {len(normalized)}")
            raise InvalidTitleError(
                f"Task title cannot exceed {MAX_TITLE_LENGTH} characters"
            )
        return normalized

    def _commit(
        self,
        tasks: Dict[UUID, Task],
        root_ids: Optional[Tuple[UUID, ...]] = None,
    ) -> TreeState:
        """Swap in a new snapshot built from the working copy."""
        self._state = TreeState.model_construct(
            tasks=tasks,
            root_ids=self._state.root_ids if root_ids is None else root_ids,
        )
        return self._state

    # ==============================================================================
    # READ OPERATIONS
    # ==============================================================================

    def get_task(self, task_id: UUID) -> Task:
        """
        Get a task by its ID.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        return self._get_task_or_raise(task_id)

    def get_children(self, task_id: UUID) -> List[Task]:
        """
        Get the direct children of a task in display order.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        self._get_task_or_raise(task_id)
        return self._state.children_of(task_id)

    def get_descendants(self, task_id: UUID) -> List[Task]:
        """
        Get all descendants of a task in pre-order, excluding the task itself.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        self._get_task_or_raise(task_id)
        return list(self._state.iter_subtree(task_id))[1:]

    def get_ancestors(self, task_id: UUID) -> List[Task]:
        """
        Get the chain of ancestors of a task, root first.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task = self._get_task_or_raise(task_id)
        ancestors = []
        while task.parent_id is not None:
            task = self._state.tasks[task.parent_id]
            ancestors.append(task)
        ancestors.reverse()
        return ancestors

    def progress(self, task_id: UUID) -> Tuple[int, int]:
        """
        Get (completed_children, total_children) for a task.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        self._get_task_or_raise(task_id)
        return self._state.progress(task_id)

    # ==============================================================================
    # PROPAGATION
    # ==============================================================================

    @staticmethod
    def _force_subtree(tasks: Dict[UUID, Task], task_id: UUID, value: bool) -> int:
        """
        Set a task and every descendant to the given completion value.

        Args:
            tasks: Working copy of the task map, updated in place
            task_id: Root of the subtree
            value: Completion value to force

        Returns:
            Number of tasks whose value actually changed
        """
        changed = 0
        stack = [task_id]
        while stack:
            current = tasks[stack.pop()]
            if current.completed != value:
                tasks[current.id] = current.model_copy(update={"completed": value})
                changed += 1
            stack.extend(current.children)
        return changed

    @staticmethod
    def _recompute_upward(tasks: Dict[UUID, Task], start_id: Optional[UUID]) -> List[UUID]:
        """
        Recompute completion along the ancestor chain starting at start_id.

        Each visited task becomes the AND of its children. The walk stops at
        the first task whose value is already correct, since nothing above it
        can change either.

        Args:
            tasks: Working copy of the task map, updated in place
            start_id: First task to recompute (None means nothing to do)

        Returns:
            Ids of the tasks that changed, bottom-up
        """
        changed = []
        current_id = start_id
        while current_id is not None:
            current = tasks[current_id]
            if not current.children:
                break
            target = all(tasks[child_id].completed for child_id in current.children)
            if current.completed == target:
                break
            tasks[current_id] = current.model_copy(update={"completed": target})
            changed.append(current_id)
            current_id = current.parent_id
        return changed

    @staticmethod
    def _promote_upward(tasks: Dict[UUID, Task], start_id: Optional[UUID]) -> List[UUID]:
        """
        Mark ancestors complete while all of their children are complete.

        Used after a delete. Unlike _recompute_upward this never marks a task
        incomplete, and a task left without children keeps its current value.

        Returns:
            Ids of the tasks that were promoted, bottom-up
        """
        promoted = []
        current_id = start_id
        while current_id is not None:
            current = tasks[current_id]
            if not current.children:
                break
            if not all(tasks[child_id].completed for child_id in current.children):
                break
            if not current.completed:
                tasks[current_id] = current.model_copy(update={"completed": True})
                promoted.append(current_id)
            current_id = current.parent_id
        return promoted

    # ==============================================================================
    # CREATE OPERATIONS
    # ==============================================================================

    def create(self, parent_id: UUID, title: str) -> UUID:
        """
        Append a new incomplete leaf to the end of a parent's children.

        Ancestors that were complete become incomplete, up to the first one
        that already was.

        Args:
            parent_id: UUID of the parent task
            title: Title of the new task (trimmed)

        Returns:
            UUID of the created task

        Raises:
            TaskNotFoundError: If parent task does not exist
            InvalidTitleError: If title is empty after trimming
        """
        parent = self._get_task_or_raise(parent_id)
        normalized = self._normalize_title(title)

        task = Task(title=normalized, parent_id=parent_id)

        tasks = dict(self._state.tasks)
        tasks[task.id] = task
        tasks[parent_id] = parent.model_copy(update={"children": parent.children + (task.id,)})
        changed = self._recompute_upward(tasks, parent_id)

        self._commit(tasks)
        logger.info(f"Created task: id={task.id}, title='{normalized}', parent_id={parent_id}")
        if changed:
            logger.debug(f"Ancestors marked incomplete after create: {changed}")
        return task.id

    def create_root(self, title: str = NEW_PROJECT_TITLE) -> UUID:
        """
        Append a new top-level project.

        Args:
            title: Title of the new project (trimmed)

        Returns:
            UUID of the created root task

        Raises:
            InvalidTitleError: If title is empty after trimming
        """
        normalized = self._normalize_title(title)
        task = Task(title=normalized)

        tasks = dict(self._state.tasks)
        tasks[task.id] = task
        self._commit(tasks, self._state.root_ids + (task.id,))

        logger.info(f"Created project: id={task.id}, title='{normalized}'")
        return task.id

    # ==============================================================================
    # UPDATE OPERATIONS
    # ==============================================================================

    def toggle_completion(self, task_id: UUID) -> TreeState:
        """
        Flip a task's completion and cascade it.

        The task and its entire subtree take the new value; then ancestors
        are recomputed from the task's parent upward.

        Args:
            task_id: UUID of the task to toggle

        Returns:
            The new snapshot

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task = self._get_task_or_raise(task_id)
        new_state = not task.completed

        tasks = dict(self._state.tasks)
        forced = self._force_subtree(tasks, task_id, new_state)
        changed = self._recompute_upward(tasks, task.parent_id)

        state = self._commit(tasks)
        logger.info(
            f"Task completion toggled: task_id={task_id}, "
            f"new_state={'completed' if new_state else 'incomplete'}, "
            f"subtree_changed={forced}, ancestors_changed={len(changed)}"
        )
        return state

    def edit_fields(
        self,
        task_id: UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> TreeState:
        """
        Update a task's title and/or description.

        Completion and structure are never touched. The title is trimmed and
        must stay non-empty; a whitespace-only description is stored empty.

        Args:
            task_id: UUID of the task to update
            title: New title (if provided)
            description: New description (if provided)

        Returns:
            The new snapshot (the current one if nothing changed)

        Raises:
            TaskNotFoundError: If task does not exist
            InvalidTitleError: If the new title is empty after trimming
        """
        task = self._get_task_or_raise(task_id)

        updates = {}
        if title is not None:
            normalized = self._normalize_title(title)
            if normalized != task.title:
                updates["title"] = normalized
        if description is not None:
            cleaned = description.strip()
            if cleaned != task.description:
                updates["description"] = cleaned

        if not updates:
            logger.debug(f"Edit left task unchanged: id={task_id}")
            return self._state

        tasks = dict(self._state.tasks)
        tasks[task_id] = task.model_copy(update=updates)
        state = self._commit(tasks)
        logger.info(f"Updated task: id={task_id}, fields={sorted(updates)}")
        return state

    # ==============================================================================
    # DELETE OPERATIONS
    # ==============================================================================

    def delete(self, task_id: UUID) -> TreeState:
        """
        Delete a task and all its descendants.

        The task is removed from its parent's children (or from the root list).
        If the former parent still has children and all of them are complete,
        it is marked complete, and so on upward. Deletion never marks an
        ancestor incomplete.

        Args:
            task_id: UUID of the task to delete

        Returns:
            The new snapshot

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task = self._get_task_or_raise(task_id)
        doomed = [t.id for t in self._state.iter_subtree(task_id)]

        tasks = dict(self._state.tasks)
        for doomed_id in doomed:
            del tasks[doomed_id]

        root_ids = None
        promoted = []
        if task.parent_id is None:
            root_ids = tuple(r for r in self._state.root_ids if r != task_id)
        else:
            parent = tasks[task.parent_id]
            tasks[parent.id] = parent.model_copy(
                update={"children": tuple(c for c in parent.children if c != task_id)}
            )
            promoted = self._promote_upward(tasks, parent.id)

        state = self._commit(tasks, root_ids)
        logger.info(
            f"Deleted task: id={task_id}, title='{task.title}', descendants={len(doomed) - 1}"
        )
        if promoted:
            logger.debug(f"Ancestors marked complete after delete: {promoted}")
        return state
