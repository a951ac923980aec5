"""Prometheus metric definitions for the follow-up service.

Single source of truth for all custom metrics. Import from here in API and Celery code.
"""

from prometheus_client import Counter, Histogram

# --- Celery task metrics ---

celery_task_total = Counter(
    "followups_celery_task_total",
    "Total Celery tasks executed",
    ["task_name", "status"],
)

celery_task_duration_seconds = Histogram(
    "followups_celery_task_duration_seconds",
    "Celery task execution duration in seconds",
    ["task_name"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# --- Business metrics ---

follow_up_actions_total = Counter(
    "followups_actions_total",
    "Follow-up state transitions by action",
    ["action"],
)

due_soon_alerts_total = Counter(
    "followups_due_soon_alerts_total",
    "Due-soon alerts fired by threshold",
    ["threshold"],
)

notifications_sent_total = Counter(
    "followups_notifications_sent_total",
    "Notification rows inserted by type",
    ["type"],
)

notification_failures_total = Counter(
    "followups_notification_failures_total",
    "Notification inserts that failed and were dropped",
)

acknowledgments_total = Counter(
    "followups_acknowledgments_total",
    "Overdue follow-up acknowledgments recorded",
)
