from datetime import datetime, timedelta, timezone

import pytest

from docbox.boxes.aging import age_in_days, aging_bucket, bucket_midpoint
from docbox.firms.dashboard import compute_completion_rate, compute_health_score
from docbox.integrations.dispatcher import format_message


def test_completion_rate_defaults_to_full() -> None:
    assert compute_completion_rate(0, 0) == 100
    assert compute_completion_rate(1, 4) == 25


def test_completion_rate_rounds_halves_up() -> None:
    assert compute_completion_rate(1, 8) == 13
    assert compute_completion_rate(5, 8) == 63


@pytest.mark.parametrize(
    "wht_overdue,need_docs,overdue_tasks,completion,expected",
    [
        (0, 0, 0, 100, 100),
        (1, 0, 0, 100, 90),
        (5, 0, 0, 100, 70),
        (0, 2, 1, 100, 85),
        (0, 10, 10, 100, 60),
        (0, 0, 0, 0, 85),
        (9, 9, 9, 0, 15),
        (0, 0, 0, 27, 99),
        (0, 0, 0, 23, 97),
    ],
)
def test_health_score(wht_overdue, need_docs, overdue_tasks, completion, expected) -> None:
    assert compute_health_score(wht_overdue, need_docs, overdue_tasks, completion) == expected


@pytest.mark.parametrize(
    "days,bucket",
    [(0, "0-3"), (3, "0-3"), (3.5, "4-7"), (7, "4-7"), (14, "8-14"), (15, "15+"), (400, "15+")],
)
def test_aging_buckets(days: float, bucket: str) -> None:
    assert aging_bucket(days) == bucket


def test_bucket_midpoints() -> None:
    assert [bucket_midpoint(b) for b in ("0-3", "4-7", "8-14", "15+")] == [1.5, 5.5, 11.0, 21.0]
    with pytest.raises(KeyError):
        bucket_midpoint("30+")


def test_age_treats_naive_datetimes_as_utc() -> None:
    now = datetime(2024, 3, 10, tzinfo=timezone.utc)
    assert age_in_days(datetime(2024, 3, 5), now) == 5.0
    assert age_in_days(now + timedelta(days=1), now) == 0.0


def test_format_message_lines() -> None:
    text = format_message(
        {
            "type": "BOX_SUBMITTED",
            "title": "กล่องใหม่รอตรวจ",
            "message": "มีกล่องส่งตรวจ",
            "box_number": "EXP2403-0001",
            "contact_name": "Acme",
            "amount": 1070,
        }
    )
    assert text.splitlines() == [
        "📋 กล่องใหม่รอตรวจ",
        "มีกล่องส่งตรวจ",
        "เลขที่: EXP2403-0001",
        "คู่ค้า: Acme",
        "ยอดเงิน: ฿1,070.00",
    ]


def test_format_message_falls_back_to_json() -> None:
    assert format_message({"type": "TEST", "ok": True}) == '[TEST] {"type": "TEST", "ok": true}'
