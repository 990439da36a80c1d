"""Bounded per-owner execution history."""

from autorules.core.config import get_settings
from autorules.core.logging import get_logger
from autorules.models.execution import ExecutionRecord

logger = get_logger(__name__)


class ExecutionLedger:
    """Newest-first execution records, capped per owner.

    Each owner's history is an immutable tuple replaced on append, so
    listing while a run appends returns either the old or the new history,
    never a mix.
    """

    def __init__(self, max_per_owner: int | None = None):
        self._max_per_owner = max_per_owner or get_settings().ledger_max_per_owner
        self._by_owner: dict[str, tuple[ExecutionRecord, ...]] = {}

    @property
    def max_per_owner(self) -> int:
        return self._max_per_owner

    def append(self, record: ExecutionRecord) -> None:
        """Add a record, evicting the owner's oldest beyond the cap."""
        history = (record, *self._by_owner.get(record.owner_id, ()))
        evicted = len(history) - self._max_per_owner
        if evicted > 0:
            history = history[: self._max_per_owner]
        self._by_owner = {**self._by_owner, record.owner_id: history}

        logger.debug(
            "Execution recorded",
            execution_id=record.id,
            rule_id=record.rule_id,
            status=record.status.value,
            evicted=max(evicted, 0),
        )

    def list_for_owner(self, owner_id: str, limit: int = 50) -> list[ExecutionRecord]:
        return list(self._by_owner.get(owner_id, ())[: max(limit, 0)])

    def list_for_rule(self, rule_id: str, limit: int = 50) -> list[ExecutionRecord]:
        """Records of one rule across all owners, newest first."""
        matches = [
            record
            for history in self._by_owner.values()
            for record in history
            if record.rule_id == rule_id
        ]
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return matches[: max(limit, 0)]

    def count_for_owner(self, owner_id: str) -> int:
        return len(self._by_owner.get(owner_id, ()))
