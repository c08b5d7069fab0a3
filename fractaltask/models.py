"""
Pydantic models for FractalTask.

Defines the task node and the forest snapshot. Both models are frozen: the
task engine hands out snapshots and produces a new one per mutation, so a
caller can never change the tree behind the engine's back.
"""

from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


MAX_TITLE_LENGTH = 500

DEFAULT_PROJECT_TITLE = "My First Project"
NEW_PROJECT_TITLE = "New Project"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Task(BaseModel):
    """
    A single node in the task forest.

    A root task (``parent_id is None``) is what the user sees as a project.
    ``children`` holds child ids in display order; the records themselves live
    in the owning ``TreeState``.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174001",
                "title": "Write release notes",
                "description": "Cover the new sync flow",
                "completed": False,
                "children": [],
                "parent_id": "123e4567-e89b-12d3-a456-426614174000",
                "created_at": "2025-01-14T10:00:00Z",
            }
        },
    )

    id: UUID = Field(default_factory=uuid4, description="Unique identifier for the task")
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH, description="Task title")
    description: str = Field(default="", description="Free-form description, may be empty")
    completed: bool = Field(default=False, description="Whether the task is completed")
    children: Tuple[UUID, ...] = Field(default_factory=tuple, description="Ordered child ids")
    parent_id: Optional[UUID] = Field(default=None, description="Parent task ID, None for a root")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v):
        """
        Trim surrounding whitespace from the title.

        A whitespace-only title then fails the min_length constraint.
        """
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v):
        """Trim the description; None is stored as an empty string."""
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("children")
    @classmethod
    def validate_unique_children(cls, v: Tuple[UUID, ...]) -> Tuple[UUID, ...]:
        """
        Validate that no child id is listed twice.

        Raises:
            ValueError: If the children tuple contains duplicates
        """
        if len(set(v)) != len(v):
            raise ValueError("Task children must be unique")
        return v

    @property
    def is_leaf(self) -> bool:
        """True if the task has no children (its completion is set directly)."""
        return not self.children

    @property
    def is_root(self) -> bool:
        """True if the task is a top-level project."""
        return self.parent_id is None


class TreeState(BaseModel):
    """
    Immutable snapshot of the whole forest.

    Tasks are stored flat, keyed by id; structure is expressed through the
    ``children``/``parent_id`` ids only.
    """

    model_config = ConfigDict(frozen=True)

    tasks: Dict[UUID, Task] = Field(default_factory=dict, description="All tasks keyed by id")
    root_ids: Tuple[UUID, ...] = Field(default_factory=tuple, description="Top-level task ids in display order")

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.tasks

    def get(self, task_id: UUID) -> Optional[Task]:
        """Return the task with the given id, or None."""
        return self.tasks.get(task_id)

    def roots(self) -> List[Task]:
        """Top-level tasks in display order."""
        return [self.tasks[root_id] for root_id in self.root_ids]

    def children_of(self, task_id: UUID) -> List[Task]:
        """
        Direct children of a task in display order.

        Args:
            task_id: UUID of the parent task

        Returns:
            List of child tasks, empty if the task is a leaf or unknown
        """
        task = self.tasks.get(task_id)
        if task is None:
            return []
        return [self.tasks[child_id] for child_id in task.children if child_id in self.tasks]

    def iter_subtree(self, task_id: UUID) -> Iterator[Task]:
        """
        Yield a task and all its descendants in pre-order.

        Siblings are visited in display order.
        """
        if task_id not in self.tasks:
            return
        stack = [task_id]
        while stack:
            current = self.tasks[stack.pop()]
            yield current
            stack.extend(reversed([c for c in current.children if c in self.tasks]))

    def progress(self, task_id: UUID) -> Tuple[int, int]:
        """
        Count completed direct children.

        Returns:
            Tuple of (completed_children, total_children)
        """
        children = self.children_of(task_id)
        return sum(1 for child in children if child.completed), len(children)

    def completion_percentage(self, task_id: UUID) -> float:
        """
        Percentage of completed direct children (0-100), 0 for a leaf.

        This is a display read-out only; completion itself stays binary.
        """
        completed, total = self.progress(task_id)
        if total == 0:
            return 0.0
        return round((completed / total) * 100, 1)

    def progress_string(self, task_id: UUID) -> str:
        """
        Progress string for tasks with children (e.g., "2/5").

        Returns:
            Completed/total children, or empty string if the task has no children
        """
        completed, total = self.progress(task_id)
        if total == 0:
            return ""
        return f"{completed}/{total}"
