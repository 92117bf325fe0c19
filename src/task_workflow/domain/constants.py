from __future__ import annotations

TASK_TYPE_SELF = "self"
TASK_TYPE_SUBSIDY = "subsidy"
TASK_TYPE_ETC = "etc"
TASK_TYPE_AS = "as"
TASK_TYPE_DEALER = "dealer"
TASK_TYPE_OUTSOURCING = "outsourcing"

TASK_TYPES = (
    TASK_TYPE_SELF,
    TASK_TYPE_SUBSIDY,
    TASK_TYPE_ETC,
    TASK_TYPE_AS,
    TASK_TYPE_DEALER,
    TASK_TYPE_OUTSOURCING,
)

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"

PRIORITY_ORDER: dict[str, int] = {
    PRIORITY_HIGH: 3,
    PRIORITY_MEDIUM: 2,
    PRIORITY_LOW: 1,
}

HEALTH_ON_TIME = "on_time"
HEALTH_AT_RISK = "at_risk"
HEALTH_DELAYED = "delayed"

HEALTH_VALUES = (HEALTH_ON_TIME, HEALTH_AT_RISK, HEALTH_DELAYED)

TOMBSTONE_ACTIVE = "active"
TOMBSTONE_DELETED = "deleted"

# Statuses that end the delay clock. The legacy unprefixed values stay because
# records created before the status prefix migration still carry them, and
# their self_ prefixed forms are listed alongside.
COMPLETED_STATUSES = frozenset(
    {
        "document_complete",
        "balance_payment",
        "self_document_complete",
        "self_balance_payment",
        "subsidy_payment",
        "as_completed",
        "dealer_payment_confirmed",
        "etc_status",
    }
)

# Only these types carry their own delay thresholds; dealer and outsourcing
# always use the etc entry.
DELAY_CRITERIA_TYPES = (
    TASK_TYPE_SELF,
    TASK_TYPE_SUBSIDY,
    TASK_TYPE_AS,
    TASK_TYPE_ETC,
)

DEFAULT_DELAY_CRITERIA: dict[str, dict[str, int]] = {
    TASK_TYPE_SELF: {"delayed": 7, "risky": 14},
    TASK_TYPE_SUBSIDY: {"delayed": 14, "risky": 20},
    TASK_TYPE_AS: {"delayed": 3, "risky": 7},
    TASK_TYPE_ETC: {"delayed": 7, "risky": 10},
}

BATCH_CHUNK_SIZE = 200
BATCH_MAX_WORKERS = 4
