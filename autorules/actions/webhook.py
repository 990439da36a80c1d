"""webhook_call action."""

from typing import Any

import httpx

from autorules.actions.base import ActionExecutor, ActionResult
from autorules.core.config import get_settings
from autorules.core.errors import ActionError
from autorules.core.logging import get_logger
from autorules.models.execution import ExecutionContext
from autorules.models.rule import ActionKind

logger = get_logger(__name__)


class WebhookCallExecutor(ActionExecutor):
    """Call an HTTP endpoint; any non-2xx response fails the action."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient(
            timeout=get_settings().webhook_timeout_seconds,
        )

    @property
    def action_kind(self) -> ActionKind:
        return ActionKind.WEBHOOK_CALL

    async def execute(self, config: dict[str, Any], context: ExecutionContext) -> ActionResult:
        url = config.get("url")
        if not url:
            raise ActionError("Webhook url is required", action_kind=self.action_kind.value)

        method = str(config.get("method", "POST")).upper()
        headers = {"Content-Type": "application/json", **(config.get("headers") or {})}
        body = config.get("body")

        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                json=body if body is not None else None,
            )
        except httpx.HTTPError as e:
            raise ActionError(
                f"Webhook call failed: {e}",
                action_kind=self.action_kind.value,
                url=url,
            ) from e

        if not response.is_success:
            raise ActionError(
                f"Webhook call failed: {response.status_code} {response.reason_phrase}",
                action_kind=self.action_kind.value,
                url=url,
                status_code=response.status_code,
            )

        logger.info("Webhook called", url=url, status_code=response.status_code)
        return ActionResult(
            message=f"Webhook called: {url}",
            details={"url": url, "method": method, "status_code": response.status_code},
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
