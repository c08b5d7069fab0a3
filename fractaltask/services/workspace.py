"""
Workspace service for FractalTask.

Binds a TaskGraphEngine to a store and an optional subtask suggester: loads
(or seeds) the forest at startup, saves after every successful mutation and
turns AI suggestions into ordinary create calls. Front ends talk to this
class and re-render from the snapshot it returns.
"""

from typing import List, Optional
from uuid import UUID

from fractaltask.logging_config import get_logger
from fractaltask.models import DEFAULT_PROJECT_TITLE, NEW_PROJECT_TITLE, TreeState
from fractaltask.services.suggestion_service import SubtaskSuggester
from fractaltask.services.task_engine import InvalidTitleError, TaskGraphEngine
from fractaltask.services.tree_store import TreeStore
from fractaltask.services.tree_validation import TreeIntegrityError, validate_tree

logger = get_logger(__name__)


class TaskWorkspace:
    """
    Engine plus persistence plus suggestions.

    Engine errors (TaskNotFoundError, InvalidTitleError) propagate to the
    caller untouched, and nothing is saved for a failed operation.
    """

    def __init__(
        self,
        store: TreeStore,
        suggester: Optional[SubtaskSuggester] = None,
    ) -> None:
        """
        Initialize the workspace.

        Args:
            store: Where the forest is loaded from and saved to
            suggester: Optional AI subtask suggester
        """
        self.store = store
        self.suggester = suggester
        self._engine: Optional[TaskGraphEngine] = None

    @property
    def engine(self) -> TaskGraphEngine:
        """The underlying engine; only available after open()."""
        if self._engine is None:
            raise RuntimeError("TaskWorkspace not opened. Call open() first.")
        return self._engine

    @property
    def state(self) -> TreeState:
        """The current snapshot."""
        return self.engine.state

    async def open(self) -> TreeState:
        """
        Load the forest, seeding a default project if there is none.

        A snapshot that is missing, malformed or structurally broken is
        replaced by a single empty project, which is saved right away. A valid
        snapshot with no projects left is kept as it is.

        Returns:
            The loaded or seeded snapshot
        """
        state = await self.store.load()

        if state is not None:
            try:
                validate_tree(state)
            except TreeIntegrityError as e:
                logger.warning(f"Discarding corrupted snapshot: {e}")
                state = None

        if state is not None:
            self._engine = TaskGraphEngine(state)
            logger.info(
                f"Workspace opened: tasks={len(state.tasks)}, projects={len(state.root_ids)}"
            )
            return state

        self._engine = TaskGraphEngine.with_default_project(DEFAULT_PROJECT_TITLE)
        await self.store.save(self._engine.state)
        logger.info("Workspace seeded with default project")
        return self._engine.state

    async def replace_state(self, state: TreeState) -> TreeState:
        """
        Replace the whole forest with an imported snapshot and save it.

        Raises:
            TreeIntegrityError: If the snapshot is structurally broken
        """
        validate_tree(state)
        self._engine = TaskGraphEngine(state)
        logger.info(f"Workspace replaced: tasks={len(state.tasks)}, projects={len(state.root_ids)}")
        return await self._save()

    async def _save(self) -> TreeState:
        state = self.engine.state
        await self.store.save(state)
        return state

    async def create(self, parent_id: UUID, title: str) -> UUID:
        """Create a subtask and save. See TaskGraphEngine.create."""
        task_id = self.engine.create(parent_id, title)
        await self._save()
        return task_id

    async def create_root(self, title: str = NEW_PROJECT_TITLE) -> UUID:
        """Create a new project and save. See TaskGraphEngine.create_root."""
        task_id = self.engine.create_root(title)
        await self._save()
        return task_id

    async def toggle_completion(self, task_id: UUID) -> TreeState:
        """Toggle a task and save. See TaskGraphEngine.toggle_completion."""
        self.engine.toggle_completion(task_id)
        return await self._save()

    async def edit_fields(
        self,
        task_id: UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> TreeState:
        """Edit a task and save. See TaskGraphEngine.edit_fields."""
        before = self.engine.state
        after = self.engine.edit_fields(task_id, title=title, description=description)
        if after is before:
            return after
        return await self._save()

    async def delete(self, task_id: UUID) -> TreeState:
        """Delete a task subtree and save. See TaskGraphEngine.delete."""
        self.engine.delete(task_id)
        return await self._save()

    async def generate_subtasks(self, task_id: UUID) -> List[UUID]:
        """
        Ask the suggester for subtasks and add them under a task.

        A failing or missing suggester counts as zero suggestions. Blank
        suggestions are skipped. If the task was deleted while the request was
        in flight, nothing is added.

        Args:
            task_id: UUID of the task to break down

        Returns:
            Ids of the created subtasks, in suggestion order

        Raises:
            TaskNotFoundError: If the task does not exist when the request starts
        """
        task = self.engine.get_task(task_id)

        if self.suggester is None:
            logger.info("No subtask suggester configured")
            return []

        try:
            suggestions = await self.suggester.suggest(task.title)
        except Exception as e:
            logger.warning(f"Subtask suggestion failed for task {task_id}: {e}")
            suggestions = []

        if task_id not in self.engine.state:
            logger.info(f"Task {task_id} was deleted before suggestions arrived")
            return []

        created = []
        for suggestion in suggestions:
            if not suggestion.strip():
                continue
            try:
                created.append(self.engine.create(task_id, suggestion))
            except InvalidTitleError as e:
                logger.warning(f"Skipping unusable suggestion: {e}")

        if created:
            await self._save()
        logger.info(f"Added {len(created)} suggested subtasks to task {task_id}")
        return created
