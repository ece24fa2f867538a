from datetime import datetime, timedelta, timezone

from app.models.attendance import Attendance
from app.services.attendance import classroom_stats, recalculate, round_half_up, student_stats

START = datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)
END = START + timedelta(minutes=60)


def _record(status="present", joined_at=None, left_at=None, student_id=1):
    return Attendance(
        student_id=student_id,
        status=status,
        joined_at=joined_at,
        left_at=left_at,
        class_start_time=START,
        class_end_time=END,
    )


def test_on_time_full_attendance():
    r = recalculate(_record(joined_at=START, left_at=END), now=END)

    assert r.status == "present"
    assert r.is_late_join is False
    assert r.is_early_leave is False
    assert r.duration == 60
    assert r.attendance_percentage == 100


def test_small_lateness_is_flagged_but_stays_present():
    r = recalculate(_record(joined_at=START + timedelta(minutes=10), left_at=END), now=END)

    assert r.is_late_join is True
    assert r.late_by_minutes == 10
    assert r.status == "present"
    assert r.duration == 50
    assert r.attendance_percentage == 83


def test_twenty_minutes_late_forces_late_status():
    r = recalculate(_record(joined_at=START + timedelta(minutes=20)), now=START + timedelta(minutes=20))

    assert r.is_late_join is True
    assert r.late_by_minutes == 20
    assert r.status == "late"


def test_five_minutes_is_not_late():
    r = recalculate(_record(joined_at=START + timedelta(minutes=5), left_at=END), now=END)
    assert r.is_late_join is False
    assert r.late_by_minutes == 0


def test_early_leave_rounds_up():
    r = recalculate(_record(joined_at=START, left_at=END - timedelta(minutes=10, seconds=30)), now=END)

    assert r.is_early_leave is True
    assert r.early_leave_minutes == 11
    assert r.duration == 50


def test_open_record_duration_capped_at_class_end():
    r = recalculate(_record(joined_at=START), now=END + timedelta(hours=2))
    assert r.duration == 60
    assert r.attendance_percentage == 100


def test_absent_record_has_zero_percentage():
    r = recalculate(_record(status="absent"), now=END)
    assert r.duration == 0
    assert r.attendance_percentage == 0
    assert r.is_late_join is False


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(66.5) == 67
    assert round_half_up(66.49) == 66


def test_student_stats_counts_late_as_attended():
    records = [
        recalculate(_record(joined_at=START, left_at=END), now=END),
        recalculate(_record(joined_at=START + timedelta(minutes=20), left_at=END), now=END),
        recalculate(_record(status="absent"), now=END),
    ]
    stats = student_stats(records)

    assert stats["total_classes"] == 3
    assert stats["present"] == 1
    assert stats["late"] == 1
    assert stats["absent"] == 1
    assert stats["attendance_percentage"] == 67


def test_student_stats_empty():
    stats = student_stats([])
    assert stats["total_classes"] == 0
    assert stats["attendance_percentage"] == 0


def test_classroom_stats_sorted_by_attendance():
    records = [
        recalculate(_record(status="absent", student_id=1), now=END),
        recalculate(_record(joined_at=START, left_at=END, student_id=2), now=END),
    ]
    rows = classroom_stats(records)

    assert [row["student_id"] for row in rows] == [2, 1]
    assert rows[0]["attendance_percentage"] == 100
    assert rows[1]["attendance_percentage"] == 0
