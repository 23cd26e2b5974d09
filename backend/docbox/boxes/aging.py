from datetime import datetime, timezone

# (upper bound in days, label, midpoint used for averages)
AGING_BUCKETS: tuple[tuple[float, str, float], ...] = (
    (3, "0-3", 1.5),
    (7, "4-7", 5.5),
    (14, "8-14", 11.0),
    (float("inf"), "15+", 21.0),
)


def age_in_days(created_at: datetime, now: datetime | None = None) -> float:
    if now is None:
        now = datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return max(0.0, (now - created_at).total_seconds() / 86400)


def aging_bucket(days: float) -> str:
    for upper, label, _ in AGING_BUCKETS:
        if days <= upper:
            return label
    return AGING_BUCKETS[-1][1]


def bucket_midpoint(label: str) -> float:
    for _, bucket_label, midpoint in AGING_BUCKETS:
        if bucket_label == label:
            return midpoint
    raise KeyError(label)
