from __future__ import annotations

from classsync.core.models import ClassCourseLink, Course, ScheduleConstraints
from classsync.core.session_utils import (
    build_slot_grid,
    expand_required_sessions,
    required_counts,
    split_hours,
)


def test_default_grid_has_four_two_hour_slots_per_weekday() -> None:
    grid = build_slot_grid(2)

    assert len(grid) == 20
    assert sorted({slot.start_time for slot in grid}) == [9, 11, 13, 15]
    assert {slot.day for slot in grid} == {"Mon", "Tue", "Wed", "Thu", "Fri"}
    assert grid[0].day == "Mon" and grid[0].start_time == 9
    assert grid[-1].day == "Fri" and grid[-1].end_time == 17


def test_grid_boundaries_shift_with_session_length() -> None:
    assert sorted({slot.start_time for slot in build_slot_grid(3)}) == [9, 12]
    assert len(build_slot_grid(1)) == 40


def test_split_hours_keeps_remainder_as_short_final_session() -> None:
    assert split_hours(4, 2, avoid_splitting=False) == [2, 2]
    assert split_hours(5, 2, avoid_splitting=False) == [2, 2, 1]
    assert split_hours(0, 2, avoid_splitting=False) == []


def test_split_hours_rounds_up_to_full_sessions_when_avoiding_splits() -> None:
    assert split_hours(5, 2, avoid_splitting=True) == [2, 2, 2]
    assert split_hours(1, 2, avoid_splitting=True) == [2]


def test_required_sessions_are_lectures_first_then_class_then_course(scenario_one) -> None:
    data = scenario_one()
    data = data.model_copy(
        update={
            "courses": [
                *data.courses,
                Course(id=2, name="Databases", hours_per_week=4, lecture_hours=2, seminar_hours=2),
            ],
            "class_courses": [
                ClassCourseLink(class_id=1, course_id=2),
                ClassCourseLink(class_id=1, course_id=1),
            ],
        }
    )

    order = [
        (item.session_type, item.class_id, item.course_id)
        for item in expand_required_sessions(data)
    ]

    assert order == [
        ("lecture", 1, 1),
        ("lecture", 1, 2),
        ("seminar", 1, 1),
        ("seminar", 1, 2),
    ]


def test_required_counts_follow_session_length(scenario_one) -> None:
    data = scenario_one(lecture_session_length=1)

    counts = required_counts(data)

    assert counts[(1, 1, "lecture")] == 2
    assert counts[(1, 1, "seminar")] == 1


def test_uneven_hours_produce_a_shorter_final_session(scenario_one) -> None:
    data = scenario_one()
    data = data.model_copy(
        update={
            "courses": [
                Course(id=1, name="Algorithms", hours_per_week=5, lecture_hours=3, seminar_hours=2)
            ],
            "constraints": ScheduleConstraints(),
        }
    )

    lectures = [
        item for item in expand_required_sessions(data) if item.session_type == "lecture"
    ]

    assert [item.duration for item in lectures] == [2, 1]
    assert [item.requirement_id for item in lectures] == [
        "1::1::lecture::S1",
        "1::1::lecture::S2",
    ]
