"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

DEFAULT_CAPTURE_TARGET_COUNT = 10
DEFAULT_APPROVAL_WINDOW_MINUTES = 60
DEFAULT_AUTO_APPROVE_THRESHOLD = 70
DEFAULT_SWEEP_INTERVAL_MINUTES = 15
DEFAULT_RETENTION_DAYS = 90
DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0
DEFAULT_CURRENCY = "NGN"

WEEKS_PER_MONTH = 4
CENTS = Decimal("0.01")

ATTENDANCE_COMPLETE_POINTS = 30
ATTENDANCE_PARTIAL_POINTS = 15
PRESENCE_MAX_POINTS = 50
REPORTING_POINTS = 20

SYSTEM_ACTOR_LABEL = "system"
DEADLINE_ESCALATION_REASON = "no employer action within deadline"
