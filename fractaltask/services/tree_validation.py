"""
Structural validation for task forests.

The engine keeps these invariants by construction; validation exists for
snapshots that come from outside the engine, i.e. whatever a store loads.
A corrupted snapshot could contain dangling ids or a parent cycle, so this
runs once at load time instead of on every traversal.
"""

from typing import List

from fractaltask.logging_config import get_logger
from fractaltask.models import TreeState

logger = get_logger(__name__)


class TreeIntegrityError(Exception):
    """Raised when a tree snapshot violates a structural invariant."""

    def __init__(self, violations: List[str]):
        self.violations = violations
        summary = "; ".join(violations[:5])
        if len(violations) > 5:
            summary += f" (+{len(violations) - 5} more)"
        super().__init__(f"Tree integrity check failed: {summary}")


def find_violations(state: TreeState, check_completion: bool = True) -> List[str]:
    """
    Collect every invariant violation in a snapshot.

    Args:
        state: Snapshot to check
        check_completion: Also check that every task with children is
            completed exactly when all of its children are

    Returns:
        Human-readable violation messages, empty if the snapshot is sound
    """
    violations: List[str] = []
    tasks = state.tasks

    for key, task in tasks.items():
        if key != task.id:
            violations.append(f"task stored under {key} has id {task.id}")

    # Referential integrity and parent/child agreement
    owner = {}
    for task in tasks.values():
        for child_id in task.children:
            child = tasks.get(child_id)
            if child is None:
                violations.append(f"task {task.id} lists missing child {child_id}")
                continue
            if child_id in owner:
                violations.append(
                    f"task {child_id} is listed by both {owner[child_id]} and {task.id}"
                )
            owner[child_id] = task.id
            if child.parent_id != task.id:
                violations.append(
                    f"task {child_id} is a child of {task.id} but points at {child.parent_id}"
                )

    for task in tasks.values():
        if task.parent_id is None:
            continue
        parent = tasks.get(task.parent_id)
        if parent is None:
            violations.append(f"task {task.id} points at missing parent {task.parent_id}")
        elif task.id not in parent.children:
            violations.append(f"task {task.id} is missing from children of {task.parent_id}")

    # Acyclicity: every parent walk must end at a root
    known_acyclic = set()
    for task in tasks.values():
        path = []
        seen = set()
        current = task
        while current is not None and current.id not in known_acyclic:
            if current.id in seen:
                violations.append(f"parent cycle through task {current.id}")
                break
            seen.add(current.id)
            path.append(current.id)
            current = tasks.get(current.parent_id) if current.parent_id is not None else None
        else:
            known_acyclic.update(path)

    # Root set
    if len(set(state.root_ids)) != len(state.root_ids):
        violations.append("root_ids contains duplicates")
    for root_id in state.root_ids:
        root = tasks.get(root_id)
        if root is None:
            violations.append(f"root id {root_id} is not a known task")
        elif root.parent_id is not None:
            violations.append(f"root id {root_id} has parent {root.parent_id}")
    listed_roots = set(state.root_ids)
    for task in tasks.values():
        if task.parent_id is None and task.id not in listed_roots:
            violations.append(f"task {task.id} has no parent but is not in root_ids")

    if check_completion:
        for task in tasks.values():
            if not task.children:
                continue
            children = [tasks[c] for c in task.children if c in tasks]
            expected = all(child.completed for child in children)
            if task.completed != expected:
                violations.append(
                    f"task {task.id} completed={task.completed} but children say {expected}"
                )

    return violations


def validate_tree(state: TreeState, check_completion: bool = False) -> None:
    """
    Validate a snapshot, raising on the first sign of corruption.

    Only structure is checked by default. Completion flags are data, not
    structure, and a snapshot with an inconsistent flag can still be
    traversed safely.

    Args:
        state: Snapshot to validate
        check_completion: Also enforce the completion invariant

    Raises:
        TreeIntegrityError: If any violation is found
    """
    violations = find_violations(state, check_completion=check_completion)
    if violations:
        logger.warning(f"Tree validation found {len(violations)} violation(s)")
        raise TreeIntegrityError(violations)
    logger.debug(f"Tree validated: tasks={len(state.tasks)}, roots={len(state.root_ids)}")
