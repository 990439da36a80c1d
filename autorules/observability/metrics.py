"""Prometheus metrics definitions."""

from prometheus_client import Counter, Gauge, Histogram

# Event metrics
EVENTS_RECEIVED = Counter(
    "automation_events_received_total",
    "Total number of inbound events received",
    ["source"],
)

RULES_MATCHED = Counter(
    "automation_rules_matched_total",
    "Total number of rule matches produced by inbound events",
    ["trigger_kind"],
)

# Execution metrics
RULE_EXECUTIONS = Counter(
    "automation_rule_executions_total",
    "Total number of completed rule runs",
    ["status"],
)

RULE_EXECUTIONS_SKIPPED = Counter(
    "automation_rule_executions_skipped_total",
    "Rule runs skipped because the rule was missing or disabled",
)

ACTION_OUTCOMES = Counter(
    "automation_action_outcomes_total",
    "Total number of executed actions",
    ["kind", "status"],
)

EXECUTION_LATENCY = Histogram(
    "automation_execution_duration_seconds",
    "Rule run duration in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# Store metrics
STORE_DEGRADED_WRITES = Counter(
    "automation_store_degraded_total",
    "Registry operations that fell back to memory because the store failed",
    ["operation"],
)

# Scheduling and dispatch
SCHEDULED_RULES = Gauge(
    "automation_scheduled_rules",
    "Number of rules with an active schedule",
)

DISPATCH_QUEUE_LENGTH = Gauge(
    "automation_dispatch_queue_length",
    "Number of rule executions waiting for a worker",
)
