"""Email trigger matching."""

import re

from autorules.core.logging import get_logger
from autorules.engine.dispatcher import ExecutionTask, RuleDispatcher
from autorules.engine.registry import RuleRegistry
from autorules.models.event import EmailEvent
from autorules.models.rule import Rule, TriggerKind
from autorules.observability.metrics import EVENTS_RECEIVED, RULES_MATCHED

logger = get_logger(__name__)


def pattern_matches(pattern: str, text: str) -> bool:
    """Case-insensitive regex search; invalid regex falls back to substring."""
    try:
        return re.search(pattern, text, re.IGNORECASE) is not None
    except re.error:
        return pattern.lower() in text.lower()


def match_patterns(patterns: list[str], text: str) -> list[str]:
    """Return the patterns that match ``text``, in declaration order."""
    return [pattern for pattern in patterns if pattern and pattern_matches(pattern, text)]


class TriggerMatcher:
    """Match inbound email against the owner's enabled email rules."""

    def __init__(self, registry: RuleRegistry, dispatcher: RuleDispatcher):
        self._registry = registry
        self._dispatcher = dispatcher

    async def process_event(self, event: EmailEvent) -> list[str]:
        """Queue an execution for every matching rule.

        Each matched rule runs as its own dispatcher task, so one rule's
        failure never affects the others.

        Args:
            event: Inbound email

        Returns:
            Ids of the matched rules
        """
        EVENTS_RECEIVED.labels(source="email").inc()

        rules = self._registry.enabled_for_owner(event.owner_id, TriggerKind.EMAIL)
        if not rules:
            logger.debug("No email rules for owner", owner_id=event.owner_id)
            return []

        text = event.search_text
        matched: list[str] = []
        for rule in rules:
            patterns = match_patterns(rule.trigger.patterns, text)
            if not patterns:
                continue

            logger.info(
                "Email trigger matched",
                rule_id=rule.id,
                owner_id=event.owner_id,
                matched_patterns=patterns,
            )
            RULES_MATCHED.labels(trigger_kind=TriggerKind.EMAIL.value).inc()
            await self._dispatcher.submit(
                ExecutionTask(
                    rule_id=rule.id,
                    trigger_data=self._trigger_data(event, rule, patterns),
                    source="email",
                )
            )
            matched.append(rule.id)

        return matched

    @staticmethod
    def _trigger_data(event: EmailEvent, rule: Rule, patterns: list[str]) -> dict:
        return {
            "email": event.to_trigger_data(),
            "matchedPatterns": patterns,
            "triggerId": rule.id,
        }
