from prometheus_client import Counter, Histogram

JOB_DURATION = Histogram(
    "job_duration_seconds",
    "Background job duration",
    ["task", "status"],
)

FILE_TRANSITIONS = Counter(
    "file_lifecycle_transitions_total",
    "File lifecycle status transitions",
    ["to_status"],
)
FILE_TRANSITION_FAILURES = Counter(
    "file_lifecycle_transition_failures_total",
    "File lifecycle transitions that failed and were left for the next sweep",
)
CLEANUP_DELETIONS = Counter(
    "file_lifecycle_deletions_total",
    "Files physically deleted after the grace period",
)
CLEANUP_FAILURES = Counter(
    "file_lifecycle_deletion_failures_total",
    "File deletions that failed",
    ["step"],
)
COST_ALERTS = Counter(
    "storage_cost_alerts_total",
    "Storage cost alerts raised",
    ["severity"],
)


def observe_job(task_name: str, status: str, duration: float) -> None:
    JOB_DURATION.labels(task=task_name, status=status).observe(duration)
