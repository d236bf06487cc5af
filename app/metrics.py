from prometheus_client import Counter
# Prometheus metrics definitions

# Entitlement checks by outcome: allowed, exhausted, none
entitlement_checks_total = Counter(
    "entitlement_checks_total", "Entitlement checks", ["result"]
)

# Usage increments by outcome: success, no_subscription, limit_reached
usage_increments_total = Counter(
    "usage_increments_total", "Usage increment attempts", ["status"]
)

# Quota rejects when a subscription has used its monthly limit
quota_reject_total = Counter(
    "quota_reject_total", "Number of quota rejected requests"
)

# Counters zeroed by the monthly sweep
usage_reset_rows_total = Counter(
    "usage_reset_rows_total", "Subscriptions reset by the monthly sweep"
)

usage_reset_failures_total = Counter(
    "usage_reset_failures_total", "Monthly sweep runs that failed"
)

# Ownership or operator checks that rejected a caller
access_denied_total = Counter(
    "access_denied_total", "Requests rejected by the access layer", ["reason"]
)

# Writes rejected by store constraints
constraint_violation_total = Counter(
    "constraint_violation_total", "Writes rejected by store constraints", ["table"]
)

__all__ = [
    "entitlement_checks_total",
    "usage_increments_total",
    "quota_reject_total",
    "usage_reset_rows_total",
    "usage_reset_failures_total",
    "access_denied_total",
    "constraint_violation_total",
]
