"""
Persistence for task forests.

A store knows how to load and save a whole TreeState; the engine never sees
the medium. Two stores are provided:

- SqliteTreeStore: adjacency-list table through async SQLAlchemy (default)
- JsonTreeStore: a single flat JSON document, also used for export/import

``load`` returns None when there is nothing usable to load (no data yet, or
data that cannot be parsed); the caller then seeds a default project.
"""

import asyncio
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import delete, select

from fractaltask.database import DatabaseManager, TaskORM
from fractaltask.export_schema import ExportedState, ExportedTask, migrate_data
from fractaltask.logging_config import get_logger
from fractaltask.models import Task, TreeState

logger = get_logger(__name__)


class StoreError(Exception):
    """Raised when a snapshot cannot be written."""
    pass


class TreeStore(Protocol):
    """Load/save contract for a whole forest."""

    async def load(self) -> Optional[TreeState]: ...

    async def save(self, state: TreeState) -> None: ...


def _as_utc(dt: datetime) -> datetime:
    """SQLite drops tzinfo; stored timestamps are always UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# ==============================================================================
# SNAPSHOT CONVERSION
# ==============================================================================

def export_state(state: TreeState) -> ExportedState:
    """
    Build the export document for a snapshot.

    Tasks are listed project by project in pre-order, so parents always
    precede their children.

    Args:
        state: Snapshot to export

    Returns:
        ExportedState with the project order and every task
    """
    tasks = [
        ExportedTask(
            id=task.id,
            title=task.title,
            description=task.description,
            completed=task.completed,
            created_at=task.created_at,
            parent_id=task.parent_id,
            children=list(task.children),
        )
        for root_id in state.root_ids
        for task in state.iter_subtree(root_id)
    ]
    return ExportedState(root_ids=list(state.root_ids), tasks=tasks)


def import_state(document: ExportedState) -> TreeState:
    """
    Rebuild a snapshot from an export document.

    Links are taken as stored; structural checks are left to
    tree_validation.validate_tree.

    Args:
        document: Parsed export document

    Returns:
        TreeState keyed by task id

    Raises:
        ValidationError: If a task does not satisfy the Task model
    """
    tasks: Dict[UUID, Task] = {}
    for exported in document.tasks:
        tasks[exported.id] = Task(
            id=exported.id,
            title=exported.title,
            description=exported.description,
            completed=exported.completed,
            children=tuple(exported.children),
            parent_id=exported.parent_id,
            created_at=_as_utc(exported.created_at),
        )

    return TreeState(tasks=tasks, root_ids=tuple(document.root_ids))


# ==============================================================================
# SQLITE STORE
# ==============================================================================

class SqliteTreeStore:
    """
    Store backed by the ``tasks`` table.

    ``save`` rewrites the table inside one transaction, so a crash never
    leaves a half-written forest behind.
    """

    def __init__(self, db_manager: DatabaseManager) -> None:
        """
        Initialize the store.

        Args:
            db_manager: Initialized database manager
        """
        self.db_manager = db_manager

    @staticmethod
    def _orm_to_pydantic(task_orm: TaskORM, children: Tuple[UUID, ...]) -> Task:
        """Convert a TaskORM row to a Task with its resolved children."""
        return Task.model_validate(
            {
                "id": UUID(task_orm.id),
                "title": task_orm.title,
                "description": task_orm.description,
                "completed": task_orm.completed,
                "children": children,
                "parent_id": UUID(task_orm.parent_id) if task_orm.parent_id else None,
                "created_at": _as_utc(task_orm.created_at),
            }
        )

    @staticmethod
    def _pydantic_to_orm(task: Task, position: int) -> TaskORM:
        """Convert a Task to a TaskORM row."""
        return TaskORM(
            id=str(task.id),
            title=task.title,
            description=task.description,
            completed=task.completed,
            parent_id=str(task.parent_id) if task.parent_id else None,
            position=position,
            created_at=task.created_at,
        )

    async def load(self) -> Optional[TreeState]:
        """
        Load the forest from the database.

        Returns:
            The stored snapshot, or None if the table is empty or holds rows
            that do not form valid tasks
        """
        async with self.db_manager.get_session() as session:
            result = await session.execute(
                select(TaskORM).order_by(TaskORM.parent_id, TaskORM.position)
            )
            rows = result.scalars().all()

        if not rows:
            logger.info("No stored tasks found")
            return None

        children_map: Dict[Optional[str], List[TaskORM]] = {}
        for row in rows:
            children_map.setdefault(row.parent_id, []).append(row)
        for siblings in children_map.values():
            siblings.sort(key=lambda r: r.position)

        try:
            tasks = {}
            for row in rows:
                children = tuple(UUID(child.id) for child in children_map.get(row.id, []))
                task = self._orm_to_pydantic(row, children)
                tasks[task.id] = task
            root_ids = tuple(UUID(row.id) for row in children_map.get(None, []))
        except (ValidationError, ValueError) as e:
            logger.warning(f"Stored tasks are malformed, ignoring them: {e}")
            return None

        logger.info(f"Loaded {len(tasks)} tasks in {len(root_ids)} projects from database")
        return TreeState(tasks=tasks, root_ids=root_ids)

    async def save(self, state: TreeState) -> None:
        """
        Replace the stored forest with a snapshot.

        Raises:
            StoreError: If the database write fails
        """
        rows = [
            self._pydantic_to_orm(state.tasks[root_id], position)
            for position, root_id in enumerate(state.root_ids)
        ]
        for task in state.tasks.values():
            rows.extend(
                self._pydantic_to_orm(state.tasks[child_id], position)
                for position, child_id in enumerate(task.children)
            )

        try:
            async with self.db_manager.get_session() as session:
                await session.execute(delete(TaskORM))
                session.add_all(rows)
        except Exception as e:
            logger.error(f"Failed to save tasks to database: {e}", exc_info=True)
            raise StoreError(f"Failed to save tasks: {e}") from e

        logger.debug(f"Saved {len(rows)} tasks to database")


# ==============================================================================
# JSON STORE
# ==============================================================================

class JsonTreeStore:
    """Store backed by a single JSON document on disk."""

    def __init__(self, path: Path) -> None:
        """
        Initialize the store.

        Args:
            path: Location of the JSON document
        """
        self.path = Path(path)

    def _read(self) -> Optional[TreeState]:
        if not self.path.exists():
            logger.info(f"No snapshot file at {self.path}")
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("snapshot root must be a JSON object")
            document = ExportedState.model_validate(migrate_data(data))
            state = import_state(document)
        except (OSError, ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Snapshot file {self.path} is unreadable, ignoring it: {e}")
            return None

        logger.info(f"Loaded {len(state.tasks)} tasks from {self.path}")
        return state

    def _write(self, state: TreeState) -> None:
        payload = export_state(state).model_dump_json(indent=2)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def load(self) -> Optional[TreeState]:
        """
        Load the forest from the JSON document.

        Returns:
            The stored snapshot, or None if the file is missing or malformed
        """
        return await asyncio.to_thread(self._read)

    async def save(self, state: TreeState) -> None:
        """
        Write the snapshot, replacing the file atomically.

        Raises:
            StoreError: If the snapshot cannot be serialized or written
        """
        try:
            await asyncio.to_thread(self._write, state)
        except (OSError, ValueError) as e:
            # PydanticSerializationError is a ValueError
            logger.error(f"Failed to write snapshot to {self.path}: {e}", exc_info=True)
            raise StoreError(f"Failed to write {self.path}: {e}") from e

        logger.debug(f"Saved {len(state.tasks)} tasks to {self.path}")
