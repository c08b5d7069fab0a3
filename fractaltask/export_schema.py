"""
Pydantic models for the JSON snapshot schema.

Defines the on-disk document used by the JSON store and by export/import.
Tasks are stored flat, keyed by id, with ``parent_id`` and ordered
``children`` links, so documents of any depth serialize without recursion.
Schema versioning supports forward-compatible migrations.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


CURRENT_SCHEMA_VERSION = 2


class ExportedTask(BaseModel):
    """
    Exported task with links to its parent and children.
    """

    id: UUID = Field(..., description="Unique task identifier")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Task description")
    completed: bool = Field(default=False, description="Completion status")
    created_at: datetime = Field(..., description="Creation timestamp")
    parent_id: Optional[UUID] = Field(default=None, description="Parent task ID, None for a project")
    children: List[UUID] = Field(default_factory=list, description="Child task IDs in display order")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174001",
                "title": "Parent task",
                "description": "Some notes",
                "completed": False,
                "created_at": "2025-01-14T10:00:00Z",
                "parent_id": None,
                "children": ["123e4567-e89b-12d3-a456-426614174002"]
            }
        }
    )


class ExportedState(BaseModel):
    """
    Full forest export.

    Single JSON object holding the project order and every task.
    """

    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION, description="Schema version for migrations")
    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Export timestamp")
    root_ids: List[UUID] = Field(default_factory=list, description="Project IDs in display order")
    tasks: List[ExportedTask] = Field(default_factory=list, description="All tasks, parents before children")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "schema_version": 2,
                "exported_at": "2025-11-26T18:00:00Z",
                "root_ids": [],
                "tasks": []
            }
        }
    )


def _flatten_projects(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a version 1 document (tasks nested under ``projects``) to the flat layout.

    Raises:
        ValueError: If the nesting is not made of JSON objects
    """
    projects = data.pop("projects", [])
    if not isinstance(projects, list):
        raise ValueError("projects must be a list")

    tasks = []
    stack = [(project, None) for project in reversed(projects)]
    while stack:
        item, parent_id = stack.pop()
        if not isinstance(item, dict):
            raise ValueError("exported task must be a JSON object")
        children = item.get("children", [])
        if not isinstance(children, list):
            raise ValueError("children must be a list")

        flat = {key: value for key, value in item.items() if key != "children"}
        flat["parent_id"] = parent_id
        flat["children"] = [child.get("id") if isinstance(child, dict) else child for child in children]
        tasks.append(flat)
        stack.extend((child, item.get("id")) for child in reversed(children))

    data["root_ids"] = [p.get("id") if isinstance(p, dict) else p for p in projects]
    data["tasks"] = tasks
    return data


def migrate_data(data: dict) -> dict:
    """
    Migrate old schema versions to current.

    Rules:
    - Version 1 documents nest tasks under ``projects``; they are flattened
    - New fields get sensible defaults when missing
    - Unknown fields are preserved (forward compatibility)

    Args:
        data: Raw JSON data from import

    Returns:
        Migrated data compatible with current schema

    Raises:
        ValueError: If the document is newer than supported or malformed
    """
    version = data.get("schema_version", 1)
    if not isinstance(version, int):
        raise ValueError(f"Invalid schema version: {version!r}")
    if version > CURRENT_SCHEMA_VERSION:
        raise ValueError(
            f"Snapshot schema version {version} is newer than supported ({CURRENT_SCHEMA_VERSION})"
        )

    if version < 2:
        data = _flatten_projects(data)

    data["schema_version"] = CURRENT_SCHEMA_VERSION
    return data
