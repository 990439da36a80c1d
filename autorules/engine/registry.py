"""In-memory rule registry kept consistent with the rule store.

The registry is the source of truth for matching and scheduling. It is
passed to its collaborators explicitly; there is no module-level instance.

Writes are copy-on-write: every mutation builds a new index dict and swaps
it in, and rules themselves are frozen, so a reader iterating a snapshot
never sees a partially applied change.
"""

from dataclasses import dataclass
from datetime import datetime

from autorules.core.errors import StoreUnavailableError
from autorules.core.logging import get_logger
from autorules.models.rule import Rule, TriggerKind, generate_rule_id
from autorules.observability.metrics import STORE_DEGRADED_WRITES
from autorules.storage.rule_store import RuleStoreProtocol

logger = get_logger(__name__)

# Stats are written by update_stats only
EDIT_EXCLUDED = frozenset({"id", "execution_count", "last_executed_at"})


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of a registry delete."""

    deleted: bool
    store_error: str | None = None


class RuleRegistry:
    """Rule-id -> Rule index backed by a durable store."""

    def __init__(self, store: RuleStoreProtocol):
        self._store = store
        self._rules: dict[str, Rule] = {}
        # Rules that only exist in memory because the store rejected them
        self._local_ids: frozenset[str] = frozenset()
        # Stored rules whose latest edit the store rejected
        self._unsynced_ids: frozenset[str] = frozenset()

    def _publish(self, rules: dict[str, Rule]) -> None:
        self._rules = rules

    async def load(self, owner_id: str | None = None) -> list[Rule]:
        """Repopulate the index from the store.

        On store failure the current in-memory state is kept and returned.

        Args:
            owner_id: Only reload this owner's rules when given

        Returns:
            The (possibly unchanged) rules in scope
        """
        try:
            if owner_id is None:
                loaded = await self._store.find_all()
            else:
                loaded = await self._store.find_by_owner(owner_id)
        except StoreUnavailableError as e:
            logger.warning(
                "Rule store unavailable, keeping in-memory rules",
                owner_id=owner_id,
                error=str(e),
            )
            return self.list_for_owner(owner_id) if owner_id else self.list_all()

        await self._resync(owner_id)

        current = self._rules
        if owner_id is None:
            rules = {}
        else:
            rules = {rid: rule for rid, rule in current.items() if rule.owner_id != owner_id}

        # Memory-only rules have no store row to come back from
        for rid in self._local_ids:
            if rid in current and (owner_id is None or current[rid].owner_id == owner_id):
                rules[rid] = current[rid]

        for rule in loaded:
            rules[rule.id] = self._merge(rule, current.get(rule.id))

        self._publish(rules)
        logger.info("Rule registry loaded", owner_id=owner_id, rule_count=len(loaded))
        return self.list_for_owner(owner_id) if owner_id else self.list_all()

    async def refresh(self, rule_id: str) -> Rule | None:
        """Re-read one rule from the store after another process changed it.

        A rule gone from the store is dropped unless it is memory-only. On
        store failure the in-memory rule is returned unchanged.
        """
        current = self._rules.get(rule_id)
        try:
            stored = await self._store.find_by_id(rule_id)
        except StoreUnavailableError as e:
            logger.warning("Rule store unavailable during refresh", rule_id=rule_id, error=str(e))
            return current

        if stored is None:
            if current is not None and rule_id not in self._local_ids:
                self._publish({rid: rule for rid, rule in self._rules.items() if rid != rule_id})
                self._unsynced_ids = self._unsynced_ids - {rule_id}
                logger.info("Rule removed from registry after store delete", rule_id=rule_id)
                return None
            return current

        merged = self._merge(stored, self._rules.get(rule_id))
        self._publish({**self._rules, rule_id: merged})
        return merged

    def _merge(self, stored: Rule, current: Rule | None) -> Rule:
        """Combine a store row with the in-memory rule.

        Unsynced edits win outright. Otherwise the store row wins, except
        that stats only move forward: the higher ``execution_count`` and the
        later ``last_executed_at`` are kept.
        """
        if current is None:
            return stored
        if stored.id in self._unsynced_ids:
            return current

        last_executed_at = stored.last_executed_at
        if current.last_executed_at and (
            last_executed_at is None or current.last_executed_at > last_executed_at
        ):
            last_executed_at = current.last_executed_at
        return stored.model_copy(
            update={
                "execution_count": max(stored.execution_count, current.execution_count),
                "last_executed_at": last_executed_at,
            }
        )

    async def _resync(self, owner_id: str | None) -> None:
        """Retry writing edits the store rejected earlier."""
        for rid in self._unsynced_ids:
            rule = self._rules.get(rid)
            if rule is None or (owner_id is not None and rule.owner_id != owner_id):
                continue
            try:
                found = await self._store.update_by_id(rid, rule.model_dump(exclude=EDIT_EXCLUDED))
            except StoreUnavailableError:
                continue
            self._unsynced_ids = self._unsynced_ids - {rid}
            if found:
                logger.info("Unsynced rule edit written to store", rule_id=rid)

    async def upsert(self, rule: Rule) -> str:
        """Create or replace a rule.

        New rules are written to the store first. When the store is
        unavailable the rule is kept in memory under a local id so the
        caller never sees a hard failure.

        Returns:
            The rule id
        """
        if rule.id and rule.id in self._rules:
            return await self._replace(rule)

        try:
            rule_id = await self._store.create(rule)
        except StoreUnavailableError as e:
            rule_id = rule.id or generate_rule_id()
            self._local_ids = self._local_ids | {rule_id}
            STORE_DEGRADED_WRITES.labels(operation="create").inc()
            logger.warning(
                "Rule store unavailable, rule kept in memory only",
                rule_id=rule_id,
                owner_id=rule.owner_id,
                error=str(e),
            )

        stored = rule.model_copy(update={"id": rule_id})
        self._publish({**self._rules, rule_id: stored})
        logger.info("Rule created", rule_id=rule_id, owner_id=rule.owner_id, rule_name=rule.name)
        return rule_id

    async def _replace(self, rule: Rule) -> str:
        current = self._rules.get(rule.id)
        if current is not None:
            # Stats are owned by update_stats, never by edits
            rule = rule.model_copy(
                update={
                    "execution_count": max(rule.execution_count, current.execution_count),
                    "last_executed_at": rule.last_executed_at or current.last_executed_at,
                    "owner_id": current.owner_id,
                    "created_at": current.created_at,
                }
            )
        self._publish({**self._rules, rule.id: rule})

        if rule.id in self._local_ids:
            return rule.id

        try:
            found = await self._store.update_by_id(rule.id, rule.model_dump(exclude=EDIT_EXCLUDED))
            self._unsynced_ids = self._unsynced_ids - {rule.id}
            if not found:
                logger.warning("Rule missing from store during update", rule_id=rule.id)
        except StoreUnavailableError as e:
            self._unsynced_ids = self._unsynced_ids | {rule.id}
            STORE_DEGRADED_WRITES.labels(operation="update").inc()
            logger.warning("Rule store unavailable, update kept in memory", rule_id=rule.id, error=str(e))

        logger.info("Rule updated", rule_id=rule.id)
        return rule.id

    async def get(self, rule_id: str) -> Rule | None:
        """Get a rule, lazily loading it from the store on a miss."""
        rule = self._rules.get(rule_id)
        if rule is not None:
            return rule

        try:
            rule = await self._store.find_by_id(rule_id)
        except StoreUnavailableError as e:
            logger.warning("Rule store unavailable during lookup", rule_id=rule_id, error=str(e))
            return None

        if rule is None:
            return None

        self._publish({**self._rules, rule.id: rule})
        logger.debug("Rule lazily loaded from store", rule_id=rule_id)
        return rule

    async def delete(self, rule_id: str) -> DeleteOutcome:
        """Delete from the store, then from the registry.

        A store failure does not prevent the registry delete; it is
        reported back as ``store_error``.
        """
        store_error = None
        stored = False
        try:
            stored = await self._store.delete_by_id(rule_id)
        except StoreUnavailableError as e:
            store_error = str(e)
            STORE_DEGRADED_WRITES.labels(operation="delete").inc()
            logger.warning("Rule store delete failed, removing from registry anyway", rule_id=rule_id, error=store_error)

        in_memory = rule_id in self._rules
        if in_memory:
            self._publish({rid: rule for rid, rule in self._rules.items() if rid != rule_id})
            self._local_ids = self._local_ids - {rule_id}
            self._unsynced_ids = self._unsynced_ids - {rule_id}

        deleted = stored or in_memory
        if deleted:
            logger.info("Rule deleted", rule_id=rule_id)
        return DeleteOutcome(deleted=deleted, store_error=store_error)

    async def update_stats(self, rule: Rule, executed_at: datetime) -> Rule | None:
        """Record one completed run of ``rule``.

        The count is incremented by exactly one relative to the registry's
        current value. The in-memory increment stands even when the store
        write fails.

        Args:
            rule: Snapshot of the rule that ran
            executed_at: Completion time of the run

        Returns:
            Updated rule, or None if the rule was deleted meanwhile
        """
        current = self._rules.get(rule.id)
        if current is None:
            logger.info("Rule deleted during execution, stats not recorded", rule_id=rule.id)
            return None

        updated = current.with_stats(executed_at, current.execution_count + 1)
        self._publish({**self._rules, rule.id: updated})

        if rule.id not in self._local_ids:
            try:
                found = await self._store.update_by_id(
                    rule.id,
                    {
                        "execution_count": updated.execution_count,
                        "last_executed_at": updated.last_executed_at,
                    },
                )
                if not found:
                    logger.info("Stats written for rule missing from store", rule_id=rule.id)
            except StoreUnavailableError as e:
                STORE_DEGRADED_WRITES.labels(operation="update_stats").inc()
                logger.warning("Failed to persist rule stats", rule_id=rule.id, error=str(e))

        return updated

    def peek(self, rule_id: str) -> Rule | None:
        """Registry-only lookup, no store access."""
        return self._rules.get(rule_id)

    def list_all(self) -> list[Rule]:
        return sorted(self._rules.values(), key=lambda r: r.created_at)

    def list_for_owner(self, owner_id: str) -> list[Rule]:
        return [rule for rule in self.list_all() if rule.owner_id == owner_id]

    def enabled_for_owner(self, owner_id: str, kind: TriggerKind) -> list[Rule]:
        return [
            rule for rule in self.list_for_owner(owner_id)
            if rule.enabled and rule.trigger.kind == kind
        ]

    def scheduled_rules(self) -> list[Rule]:
        return [rule for rule in self.list_all() if rule.is_scheduled and rule.enabled]
