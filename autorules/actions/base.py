"""Base class for action executors."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from autorules.models.execution import ExecutionContext
from autorules.models.rule import ActionKind


@dataclass
class ActionResult:
    """What an executor reports back on success."""

    message: str
    details: dict[str, Any] = field(default_factory=dict)


class ActionExecutor(ABC):
    """Abstract base class for action executors.

    ``execute`` receives the action's config verbatim and the run's context.
    It returns an ActionResult on success and raises on failure; the
    pipeline records either outcome and moves on to the next action.
    """

    @property
    @abstractmethod
    def action_kind(self) -> ActionKind:
        """Return the action kind this executor handles."""
        pass

    @abstractmethod
    async def execute(self, config: dict[str, Any], context: ExecutionContext) -> ActionResult:
        """Run the action.

        Args:
            config: Action configuration
            context: Execution context of the current run

        Returns:
            Result message and details

        Raises:
            ActionError: If the action could not be completed
        """
        pass

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
        pass
