from __future__ import annotations

from classsync.core.metrics import (
    count_soft_violations,
    score_schedule,
    total_hours,
    utilization_rate,
)
from classsync.core.models import ScheduleConflict


def _conflict(severity: str) -> ScheduleConflict:
    return ScheduleConflict(code="TEST", severity=severity, message=f"{severity} conflict")


def test_clean_schedule_scores_full_marks(scenario_one, make_session) -> None:
    sessions = [
        make_session("lecture"),
        make_session("seminar", teacher_id=2, room_id=2, session_type="seminar", start=11),
    ]

    report = score_schedule(scenario_one(), sessions, [])

    assert report.score == 100
    assert report.utilization_rate == 5.0
    assert report.soft_violations == 0


def test_penalties_per_severity(scenario_one) -> None:
    data = scenario_one()

    assert score_schedule(data, [], [_conflict("critical")]).score == 85
    assert score_schedule(data, [], [_conflict("warning")]).score == 95


def test_score_never_drops_below_zero(scenario_one) -> None:
    report = score_schedule(scenario_one(), [], [_conflict("critical")] * 10)

    assert report.score == 0
    assert report.critical_conflicts == 10


def test_adding_a_conflict_never_raises_the_score(scenario_one) -> None:
    data = scenario_one()
    conflicts: list[ScheduleConflict] = []
    previous = score_schedule(data, [], conflicts).score
    for severity in ["warning", "critical", "warning", "critical", "critical"]:
        conflicts.append(_conflict(severity))
        current = score_schedule(data, [], conflicts).score
        assert current <= previous
        previous = current


def test_late_session_counts_two_soft_violations(scenario_one, make_session) -> None:
    sessions = [make_session("lecture", start=15)]

    assert count_soft_violations(scenario_one(), sessions) == 2


def test_back_to_back_pairs_count_only_when_avoided(scenario_one, make_session) -> None:
    sessions = [make_session("a"), make_session("b", start=11)]

    assert count_soft_violations(scenario_one(), sessions) == 0
    assert count_soft_violations(scenario_one(avoid_back_to_back_sessions=True), sessions) == 1


def test_grouped_event_occupies_one_room_slot(shared_lecture, make_session) -> None:
    grouped = [
        make_session("a", class_id=1, group_id="group-1"),
        make_session("b", class_id=2, group_id="group-1"),
    ]
    separate = [make_session("a", class_id=1), make_session("b", class_id=2, start=11)]

    assert utilization_rate(shared_lecture(), grouped) == 5.0
    assert utilization_rate(shared_lecture(), separate) == 10.0
    assert total_hours(grouped) == 2
    assert total_hours(separate) == 4


def test_no_rooms_means_zero_utilization(scenario_one, make_session) -> None:
    data = scenario_one().model_copy(update={"rooms": []})

    assert utilization_rate(data, [make_session("lecture")]) == 0.0
