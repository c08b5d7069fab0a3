"""
AI subtask suggestions for FractalTask.

Asks a Gemini model to break a task title down into a handful of concrete
subtasks. The suggester only returns strings; adding them to the tree is the
workspace's job, through ordinary create calls.
"""

import asyncio
import json
from typing import Any, List, Optional, Protocol, Sequence

from google import genai
from google.genai import types

from fractaltask.config import DEFAULT_SUGGESTION_MODEL
from fractaltask.logging_config import get_logger

logger = get_logger(__name__)

PROMPT_TEMPLATE = (
    "Break down the following task into 3 to 5 distinct, actionable, "
    "and concrete subtasks.\n"
    'Task: "{title}"'
)


class SuggestionError(Exception):
    """Raised when subtask suggestions cannot be produced."""
    pass


class SubtaskSuggester(Protocol):
    """Anything that can propose subtask titles for a task title."""

    async def suggest(self, title: str) -> List[str]: ...


class GeminiSuggester:
    """Subtask suggester backed by the Gemini API via google-genai."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_SUGGESTION_MODEL,
        timeout: float = 30.0,
        client: Optional[Any] = None,
    ) -> None:
        """
        Initialize the suggester.

        Args:
            api_key: Gemini API key (required unless a client is given)
            model: Gemini model name
            timeout: Seconds to wait for a response
            client: Pre-built genai.Client, mainly for tests

        Raises:
            SuggestionError: If neither an API key nor a client is provided
        """
        if client is None:
            if not api_key:
                raise SuggestionError("Gemini API key not configured")
            client = genai.Client(api_key=api_key)
        self._client = client
        self.model = model
        self.timeout = timeout

    @staticmethod
    def _generation_config() -> types.GenerateContentConfig:
        """JSON output constrained to an array of strings."""
        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
            ),
        )

    @staticmethod
    def parse_suggestions(text: Optional[str]) -> List[str]:
        """
        Parse the model's JSON reply.

        Args:
            text: Raw response text

        Returns:
            Suggestions as strings; empty for an empty reply or a JSON value
            that is not an array

        Raises:
            SuggestionError: If the text is not valid JSON
        """
        if not text:
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SuggestionError(f"Unparseable suggestion response: {e}") from e
        if not isinstance(data, list):
            logger.warning(f"Suggestion response is not an array: {type(data).__name__}")
            return []
        return [str(item) for item in data]

    async def suggest(self, title: str) -> List[str]:
        """
        Ask the model for subtasks of a task.

        Args:
            title: Title of the task to break down

        Returns:
            Suggested subtask titles (may be empty)

        Raises:
            SuggestionError: On transport errors, timeouts or bad responses
        """
        prompt = PROMPT_TEMPLATE.format(title=title)
        logger.info(f"Requesting subtask suggestions: model={self.model}, title='{title}'")

        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=self._generation_config(),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Suggestion request timed out after {self.timeout}s")
            raise SuggestionError("Suggestion request timed out") from e
        except Exception as e:
            logger.error(f"Suggestion request failed: {e}", exc_info=True)
            raise SuggestionError(f"Suggestion request failed: {e}") from e

        suggestions = self.parse_suggestions(response.text)
        logger.info(f"Received {len(suggestions)} subtask suggestions")
        return suggestions


class StaticSuggester:
    """Suggester returning a fixed list, for offline use."""

    def __init__(self, suggestions: Sequence[str] = ()) -> None:
        self._suggestions = list(suggestions)

    async def suggest(self, title: str) -> List[str]:
        return list(self._suggestions)


def build_suggester(config: dict) -> Optional[SubtaskSuggester]:
    """
    Build the configured suggester.

    Args:
        config: Result of Config.get_suggestion_config()

    Returns:
        A GeminiSuggester, or None if suggestions are disabled or no API key
        is configured
    """
    if not config.get("enabled", True):
        logger.info("Subtask suggestions disabled by configuration")
        return None
    if not config.get("api_key"):
        logger.info("No Gemini API key configured; subtask suggestions unavailable")
        return None
    return GeminiSuggester(
        api_key=config["api_key"],
        model=config.get("model", DEFAULT_SUGGESTION_MODEL),
        timeout=config.get("timeout", 30.0),
    )
