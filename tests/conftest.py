from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from classsync.core.models import (
    ClassCourseLink,
    Course,
    CourseAssignment,
    Room,
    ScheduleConstraints,
    ScheduleSession,
    SchedulingInput,
    SchoolClass,
    Teacher,
    TimeSlot,
)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"


def _scenario_one(**constraint_overrides: Any) -> SchedulingInput:
    return SchedulingInput(
        classes=[SchoolClass(id=1, name="CS-1A", student_count=30)],
        courses=[
            Course(id=1, name="Algorithms", hours_per_week=4, lecture_hours=2, seminar_hours=2)
        ],
        teachers=[Teacher(id=1, name="Ana Ionescu"), Teacher(id=2, name="Mihai Pop")],
        rooms=[
            Room(id=1, name="Aula Magna", type="lecture", capacity=120),
            Room(id=2, name="Lab 201", type="seminar", capacity=30),
        ],
        course_assignments=[
            CourseAssignment(teacher_id=1, course_id=1, assignment_type="lecture"),
            CourseAssignment(teacher_id=2, course_id=1, assignment_type="seminar"),
        ],
        class_courses=[ClassCourseLink(class_id=1, course_id=1)],
        constraints=ScheduleConstraints(**constraint_overrides),
    )


def _shared_lecture(room_capacity: int = 100, **constraint_overrides: Any) -> SchedulingInput:
    return SchedulingInput(
        classes=[
            SchoolClass(id=1, name="CS-1A", student_count=30),
            SchoolClass(id=2, name="CS-1B", student_count=30),
        ],
        courses=[
            Course(id=1, name="Algorithms", hours_per_week=2, lecture_hours=2, seminar_hours=0)
        ],
        teachers=[Teacher(id=1, name="Ana Ionescu")],
        rooms=[Room(id=1, name="Aula Magna", type="lecture", capacity=room_capacity)],
        course_assignments=[
            CourseAssignment(teacher_id=1, course_id=1, assignment_type="lecture"),
        ],
        class_courses=[
            ClassCourseLink(class_id=1, course_id=1),
            ClassCourseLink(class_id=2, course_id=1),
        ],
        constraints=ScheduleConstraints(**constraint_overrides),
    )


def _seminar_contention(class_count: int) -> SchedulingInput:
    return SchedulingInput(
        classes=[
            SchoolClass(id=index, name=f"G{index:02d}", student_count=20)
            for index in range(1, class_count + 1)
        ],
        courses=[
            Course(id=1, name="Statistics", hours_per_week=2, lecture_hours=0, seminar_hours=2)
        ],
        teachers=[Teacher(id=1, name="Elena Radu")],
        rooms=[Room(id=1, name="Lab 201", type="seminar", capacity=30)],
        course_assignments=[
            CourseAssignment(teacher_id=1, course_id=1, assignment_type="seminar"),
        ],
        class_courses=[
            ClassCourseLink(class_id=index, course_id=1)
            for index in range(1, class_count + 1)
        ],
    )


def _session(
    session_id: str,
    *,
    class_id: int = 1,
    course_id: int = 1,
    teacher_id: int = 1,
    room_id: int = 1,
    session_type: str = "lecture",
    day: str = "Mon",
    start: int = 9,
    duration: int = 2,
    group_id: str | None = None,
) -> ScheduleSession:
    return ScheduleSession(
        id=session_id,
        class_id=class_id,
        course_id=course_id,
        teacher_id=teacher_id,
        room_id=room_id,
        type=session_type,
        time_slot=TimeSlot(day=day, start_time=start, duration=duration),
        group_id=group_id,
    )


@pytest.fixture
def scenario_one() -> Callable[..., SchedulingInput]:
    return _scenario_one


@pytest.fixture
def shared_lecture() -> Callable[..., SchedulingInput]:
    return _shared_lecture


@pytest.fixture
def seminar_contention() -> Callable[[int], SchedulingInput]:
    return _seminar_contention


@pytest.fixture
def make_session() -> Callable[..., ScheduleSession]:
    return _session


@pytest.fixture
def sample_payload() -> dict:
    with (DATA_DIR / "sample_input.json").open("r", encoding="utf-8") as file:
        return json.load(file)


@pytest.fixture
def sample_input(sample_payload: dict) -> SchedulingInput:
    return SchedulingInput.model_validate(sample_payload)
