from __future__ import annotations

from dataclasses import dataclass

from classsync.core.models import (
    WEEKDAYS,
    Course,
    ScheduleConstraints,
    SchedulingInput,
    SchoolClass,
    SessionType,
    TimeSlot,
)

DAY_START_HOUR = 9
DAY_END_HOUR = 17

SESSION_TYPES: tuple[SessionType, ...] = ("lecture", "seminar")


@dataclass(frozen=True)
class RequiredSession:
    requirement_id: str
    class_id: int
    class_name: str
    student_count: int
    course_id: int
    course_name: str
    session_type: SessionType
    index: int
    duration: int


def build_slot_grid(session_length: int) -> list[TimeSlot]:
    """Week grid for one session length, ordered by day then start hour.

    Slots tile the teaching day from DAY_START_HOUR; a length of 2 yields
    starts at 9, 11, 13 and 15.
    """
    slots_per_day = max(1, (DAY_END_HOUR - DAY_START_HOUR) // session_length)
    return [
        TimeSlot(
            day=day,
            start_time=DAY_START_HOUR + index * session_length,
            duration=session_length,
        )
        for day in WEEKDAYS
        for index in range(slots_per_day)
    ]


def split_hours(hours: int, session_length: int, avoid_splitting: bool) -> list[int]:
    """Durations of the sessions that realise ``hours`` of teaching.

    The count is always ceil(hours / session_length). Without
    ``avoid_splitting`` the final session keeps only the remainder; with it
    every session is full length.
    """
    if hours <= 0:
        return []
    full, remainder = divmod(hours, session_length)
    durations = [session_length] * full
    if remainder:
        durations.append(session_length if avoid_splitting else remainder)
    return durations


def requirement_id(class_id: int, course_id: int, session_type: str, index: int) -> str:
    return f"{class_id}::{course_id}::{session_type}::S{index}"


def expand_class_requirements(
    school_class: SchoolClass,
    course: Course,
    constraints: ScheduleConstraints,
) -> list[RequiredSession]:
    sessions: list[RequiredSession] = []
    hours_by_type = {"lecture": course.lecture_hours, "seminar": course.seminar_hours}
    for session_type in SESSION_TYPES:
        durations = split_hours(
            hours_by_type[session_type],
            constraints.session_length(session_type),
            constraints.avoid_splitting_sessions,
        )
        for index, duration in enumerate(durations, start=1):
            sessions.append(
                RequiredSession(
                    requirement_id=requirement_id(
                        school_class.id, course.id, session_type, index
                    ),
                    class_id=school_class.id,
                    class_name=school_class.name,
                    student_count=school_class.student_count,
                    course_id=course.id,
                    course_name=course.name,
                    session_type=session_type,
                    index=index,
                    duration=duration,
                )
            )
    return sessions


def expand_required_sessions(data: SchedulingInput) -> list[RequiredSession]:
    """All sessions the snapshot asks for, in placement order.

    Lectures come before seminars; ties break on class id, course id and the
    session's index so identical input always yields the same order.
    """
    class_by_id = {item.id: item for item in data.classes}
    course_by_id = {course.id: course for course in data.courses}

    sessions: list[RequiredSession] = []
    seen_links: set[tuple[int, int]] = set()
    for link in data.class_courses:
        key = (link.class_id, link.course_id)
        if key in seen_links:
            continue
        seen_links.add(key)
        school_class = class_by_id.get(link.class_id)
        course = course_by_id.get(link.course_id)
        if school_class is None or course is None:
            continue
        sessions.extend(expand_class_requirements(school_class, course, data.constraints))

    return sorted(sessions, key=placement_key)


def placement_key(session: RequiredSession) -> tuple[int, int, int, int]:
    return (
        SESSION_TYPES.index(session.session_type),
        session.class_id,
        session.course_id,
        session.index,
    )


def required_counts(data: SchedulingInput) -> dict[tuple[int, int, SessionType], int]:
    counts: dict[tuple[int, int, SessionType], int] = {}
    for session in expand_required_sessions(data):
        key = (session.class_id, session.course_id, session.session_type)
        counts[key] = counts.get(key, 0) + 1
    return counts
