"""wait action."""

import asyncio
from typing import Any

from autorules.actions.base import ActionExecutor, ActionResult
from autorules.core.errors import ActionError
from autorules.models.execution import ExecutionContext
from autorules.models.rule import ActionKind


class WaitExecutor(ActionExecutor):
    """Suspend the run for ``config.duration`` milliseconds."""

    @property
    def action_kind(self) -> ActionKind:
        return ActionKind.WAIT

    async def execute(self, config: dict[str, Any], context: ExecutionContext) -> ActionResult:
        duration = config.get("duration", 0)
        if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration < 0:
            raise ActionError(
                "duration must be a non-negative number of milliseconds",
                action_kind=self.action_kind.value,
            )

        await asyncio.sleep(duration / 1000)
        return ActionResult(message=f"Waited for {duration}ms", details={"duration": duration})
