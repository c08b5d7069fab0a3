"""
Command-line front end for FractalTask.

A thin adapter: each sub-command opens the workspace, performs at most one
operation, saves through the workspace and prints the resulting tree.
"""

import argparse
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, Optional
from uuid import UUID

from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from fractaltask.config import Config
from fractaltask.database import database_url_for, init_database
from fractaltask.logging_config import get_logger
from fractaltask.models import NEW_PROJECT_TITLE, Task, TreeState
from fractaltask.services.suggestion_service import build_suggester
from fractaltask.services.navigation import ColumnNavigator
from fractaltask.services.task_engine import TaskGraphEngine, TaskNotFoundError
from fractaltask.services.tree_store import JsonTreeStore, SqliteTreeStore, TreeStore
from fractaltask.services.workspace import TaskWorkspace

logger = get_logger(__name__)

CHECKED = "[green]✔[/green]"
UNCHECKED = "[dim]○[/dim]"


class CommandError(Exception):
    """Raised for invalid command-line input."""
    pass


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all sub-commands."""
    parser = argparse.ArgumentParser(
        prog="fractaltask",
        description="Break projects down into nested tasks and check them off",
    )
    parser.add_argument('--config', type=Path, default=None, help='Path to settings.ini')
    parser.add_argument('--log-level', default=None, help='Log level (default: INFO)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Echo logs to the terminal')

    commands = parser.add_subparsers(dest='command')

    show = commands.add_parser('show', help='Print the task tree')
    show.add_argument('--id', dest='task_id', default=None, help='Only print this subtree')

    add = commands.add_parser('add', help='Add a subtask')
    add.add_argument('parent_id', help='Parent task id (or unique prefix)')
    add.add_argument('title', help='Subtask title')

    add_project = commands.add_parser('add-project', help='Add a new project')
    add_project.add_argument('title', nargs='?', default=NEW_PROJECT_TITLE, help='Project title')

    toggle = commands.add_parser('toggle', help='Toggle completion of a task')
    toggle.add_argument('task_id', help='Task id (or unique prefix)')

    edit = commands.add_parser('edit', help='Edit title and/or description')
    edit.add_argument('task_id', help='Task id (or unique prefix)')
    edit.add_argument('--title', default=None, help='New title')
    edit.add_argument('--description', default=None, help='New description')

    remove = commands.add_parser('delete', help='Delete a task and its subtasks')
    remove.add_argument('task_id', help='Task id (or unique prefix)')

    suggest = commands.add_parser('suggest', help='Add AI-suggested subtasks')
    suggest.add_argument('task_id', help='Task id (or unique prefix)')

    export = commands.add_parser('export', help='Write the forest to a JSON file')
    export.add_argument('path', type=Path, help='Destination file')

    import_ = commands.add_parser('import', help='Replace the forest with a JSON file')
    import_.add_argument('path', type=Path, help='Source file')

    return parser


def resolve_task_id(state: TreeState, text: str) -> UUID:
    """
    Resolve a full task id or a unique prefix of one.

    Raises:
        TaskNotFoundError: If nothing matches
        CommandError: If the prefix matches more than one task
    """
    needle = text.strip().lower()
    matches = [task_id for task_id in state.tasks if str(task_id).startswith(needle)]
    if not needle or not matches:
        raise TaskNotFoundError(f"Task with id {text} not found")
    if len(matches) > 1:
        raise CommandError(f"Id prefix '{text}' is ambiguous ({len(matches)} tasks)")
    return matches[0]


def _task_label(state: TreeState, task: Task, show_descriptions: bool) -> str:
    label = f"{CHECKED if task.completed else UNCHECKED} {escape(task.title)}"
    progress = state.progress_string(task.id)
    if progress:
        label += f" [cyan]{progress}[/cyan] [dim]{state.completion_percentage(task.id):.0f}%[/dim]"
    label += f" [dim]{str(task.id)[:8]}[/dim]"
    if show_descriptions and task.description:
        label += f"\n[italic]{escape(task.description)}[/italic]"
    return label


def render_tree(
    state: TreeState,
    root_ids: Optional[Iterable[UUID]] = None,
    show_descriptions: bool = True,
) -> Tree:
    """
    Build a rich Tree for some or all projects.

    Args:
        state: Snapshot to render
        root_ids: Subtrees to render (defaults to every project)
        show_descriptions: Print descriptions under titles

    Returns:
        rich Tree ready for Console.print
    """
    tree = Tree("[bold]FractalTask[/bold]")
    ids = state.root_ids if root_ids is None else root_ids

    for root_id in ids:
        branch = tree.add(_task_label(state, state.tasks[root_id], show_descriptions))
        stack = [(root_id, branch)]
        while stack:
            task_id, node = stack.pop()
            for child in state.children_of(task_id):
                child_node = node.add(_task_label(state, child, show_descriptions))
                stack.append((child.id, child_node))

    return tree


def breadcrumb_line(engine: TaskGraphEngine, task_id: UUID) -> str:
    """Path from the project down to a task, as console markup."""
    path = [task.id for task in engine.get_ancestors(task_id)] + [task_id]
    navigator = ColumnNavigator.open_at(engine.state, path)
    return " › ".join(escape(task.title) for task in navigator.breadcrumbs(engine.state))


@asynccontextmanager
async def open_store(storage_config: Dict) -> AsyncIterator[TreeStore]:
    """Open the configured store, closing the database afterwards."""
    if storage_config['backend'] == 'json':
        yield JsonTreeStore(storage_config['json_path'])
        return

    db_manager = await init_database(database_url_for(storage_config['database_path']))
    try:
        yield SqliteTreeStore(db_manager)
    finally:
        await db_manager.close()


async def run_command(options: argparse.Namespace, config: Config, console: Console) -> int:
    """
    Execute one parsed command against the configured workspace.

    Returns:
        Exit code
    """
    display = config.get_display_config()

    async with open_store(config.get_storage_config()) as store:
        suggester = None
        if options.command == 'suggest':
            suggester = build_suggester(config.get_suggestion_config())
            if suggester is None:
                console.print("[yellow]Subtask suggestions are not configured.[/yellow]")

        workspace = TaskWorkspace(store, suggester=suggester)
        state = await workspace.open()
        focus = None

        if options.command in (None, 'show'):
            if getattr(options, 'task_id', None):
                focus = [resolve_task_id(state, options.task_id)]
                console.print(breadcrumb_line(workspace.engine, focus[0]))

        elif options.command == 'add':
            parent_id = resolve_task_id(state, options.parent_id)
            task_id = await workspace.create(parent_id, options.title)
            console.print(f"Added [bold]{escape(options.title.strip())}[/bold] ({task_id})")

        elif options.command == 'add-project':
            task_id = await workspace.create_root(options.title)
            console.print(f"Added project ({task_id})")

        elif options.command == 'toggle':
            await workspace.toggle_completion(resolve_task_id(state, options.task_id))

        elif options.command == 'edit':
            if options.title is None and options.description is None:
                raise CommandError("Nothing to edit: pass --title and/or --description")
            await workspace.edit_fields(
                resolve_task_id(state, options.task_id),
                title=options.title,
                description=options.description,
            )

        elif options.command == 'delete':
            task_id = resolve_task_id(state, options.task_id)
            title = state.tasks[task_id].title
            removed = len(workspace.engine.get_descendants(task_id))
            await workspace.delete(task_id)
            console.print(f"Deleted [bold]{escape(title)}[/bold] and {removed} subtasks")

        elif options.command == 'suggest':
            created = await workspace.generate_subtasks(resolve_task_id(state, options.task_id))
            console.print(f"Added {len(created)} suggested subtasks")

        elif options.command == 'export':
            await JsonTreeStore(options.path).save(workspace.state)
            console.print(f"Exported {len(workspace.state.tasks)} tasks to {options.path}")
            return 0

        elif options.command == 'import':
            imported = await JsonTreeStore(options.path).load()
            if imported is None:
                raise CommandError(f"Nothing importable in {options.path}")
            await workspace.replace_state(imported)
            console.print(f"Imported {len(imported.tasks)} tasks from {options.path}")

        console.print(render_tree(workspace.state, focus, display['show_descriptions']))
        return 0
