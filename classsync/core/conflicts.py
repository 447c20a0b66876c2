from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from classsync.core.eligibility import EligibilityResolver
from classsync.core.models import (
    WEEKDAYS,
    PlacementFailure,
    ScheduleConflict,
    ScheduleSession,
    SchedulingInput,
)
from classsync.core.session_utils import required_counts


def _event_key(session: ScheduleSession) -> str:
    return session.group_id or session.id


def _same_event(first: ScheduleSession, second: ScheduleSession) -> bool:
    return first.group_id is not None and first.group_id == second.group_id


def detect_conflicts(
    data: SchedulingInput,
    sessions: list[ScheduleSession],
    failures: Iterable[PlacementFailure] = (),
) -> list[ScheduleConflict]:
    """Inspects a finished or partial session set and reports every conflict.

    Each check runs independently over the whole set; nothing is diffed
    against an earlier pass.
    """
    conflicts: list[ScheduleConflict] = []
    failures = list(failures)

    class_by_id = {item.id: item for item in data.classes}
    teacher_by_id = {teacher.id: teacher for teacher in data.teachers}
    room_by_id = {room.id: room for room in data.rooms}
    course_by_id = {course.id: course for course in data.courses}
    resolver = EligibilityResolver(data)

    def teacher_name(session: ScheduleSession) -> str:
        teacher = teacher_by_id.get(session.teacher_id)
        return teacher.name if teacher else session.teacher_name or f"teacher {session.teacher_id}"

    def room_name(session: ScheduleSession) -> str:
        room = room_by_id.get(session.room_id)
        return room.name if room else session.room_name or f"room {session.room_id}"

    def class_name(session: ScheduleSession) -> str:
        item = class_by_id.get(session.class_id)
        return item.name if item else session.class_name or f"class {session.class_id}"

    def course_name(session: ScheduleSession) -> str:
        course = course_by_id.get(session.course_id)
        return course.name if course else session.course_name or f"course {session.course_id}"

    sessions_by_day: dict[str, list[ScheduleSession]] = defaultdict(list)
    for session in sessions:
        sessions_by_day[session.time_slot.day].append(session)

    for day in WEEKDAYS:
        day_sessions = sessions_by_day.get(day, [])
        for position, first in enumerate(day_sessions):
            for second in day_sessions[position + 1 :]:
                if not first.time_slot.overlaps(second.time_slot):
                    continue
                grouped = _same_event(first, second)
                shared: list[str] = []
                affected: list[str] = []
                if first.teacher_id == second.teacher_id and not grouped:
                    shared.append(f"teacher {teacher_name(first)}")
                    affected.append(teacher_name(first))
                if first.room_id == second.room_id and not grouped:
                    shared.append(f"room {room_name(first)}")
                    affected.append(room_name(first))
                if first.class_id == second.class_id:
                    shared.append(f"class {class_name(first)}")
                    affected.append(class_name(first))
                if not shared:
                    continue
                conflicts.append(
                    ScheduleConflict(
                        code="DOUBLE_BOOKING",
                        severity="critical",
                        message=(
                            f"Double booking on {day} at {first.time_slot.start_time}:00: "
                            f"{', '.join(shared)} shared by {course_name(first)} "
                            f"and {course_name(second)}."
                        ),
                        affected=affected,
                        session_ids=[first.id, second.id],
                    )
                )

    teacher_day_events: dict[tuple[int, str], dict[str, ScheduleSession]] = defaultdict(dict)
    teacher_day_sessions: dict[tuple[int, str], list[str]] = defaultdict(list)
    for session in sessions:
        key = (session.teacher_id, session.time_slot.day)
        teacher_day_events[key].setdefault(_event_key(session), session)
        teacher_day_sessions[key].append(session.id)

    limit = data.constraints.max_teacher_hours_per_day
    for (teacher_id, day), events in sorted(
        teacher_day_events.items(),
        key=lambda item: (item[0][0], WEEKDAYS.index(item[0][1])),
    ):
        hours = sum(event.time_slot.duration for event in events.values())
        if hours <= limit:
            continue
        name = teacher_name(next(iter(events.values())))
        conflicts.append(
            ScheduleConflict(
                code="TEACHER_OVERLOAD",
                severity="warning",
                message=(
                    f"Teacher {name} teaches {hours}h on {day}, "
                    f"above the {limit}h daily limit."
                ),
                affected=[name],
                session_ids=teacher_day_sessions[(teacher_id, day)],
            )
        )

    for failure in failures:
        conflicts.append(
            ScheduleConflict(
                code="UNMET_REQUIREMENT",
                severity="critical",
                message=(
                    f"Insufficient resources to schedule {failure.course_name} "
                    f"{failure.type} for {failure.class_name}: {failure.reason}."
                ),
                affected=[failure.course_name, failure.class_name],
            )
        )

    for session in sessions:
        missing = []
        if session.class_id not in class_by_id:
            missing.append(f"class {session.class_id}")
        if session.course_id not in course_by_id:
            missing.append(f"course {session.course_id}")
        if session.teacher_id not in teacher_by_id:
            missing.append(f"teacher {session.teacher_id}")
        if session.room_id not in room_by_id:
            missing.append(f"room {session.room_id}")
        if missing:
            conflicts.append(
                ScheduleConflict(
                    code="UNKNOWN_ENTITY",
                    severity="critical",
                    message=f"Session '{session.id}' references unknown {', '.join(missing)}.",
                    affected=missing,
                    session_ids=[session.id],
                )
            )
            continue

        room = room_by_id[session.room_id]
        if room.type != session.type:
            conflicts.append(
                ScheduleConflict(
                    code="ROOM_TYPE_MISMATCH",
                    severity="critical",
                    message=(
                        f"{course_name(session)} {session.type} for {class_name(session)} "
                        f"is held in {room.type} room {room.name}."
                    ),
                    affected=[room.name, course_name(session), class_name(session)],
                    session_ids=[session.id],
                )
            )

        if not resolver.is_eligible(session.teacher_id, session.course_id, session.type):
            conflicts.append(
                ScheduleConflict(
                    code="INELIGIBLE_TEACHER",
                    severity="critical",
                    message=(
                        f"Teacher {teacher_name(session)} is not assigned to "
                        f"{course_name(session)} {session.type}."
                    ),
                    affected=[teacher_name(session), course_name(session)],
                    session_ids=[session.id],
                )
            )

    placed: dict[tuple[int, int, str], list[str]] = defaultdict(list)
    for session in sessions:
        placed[(session.class_id, session.course_id, session.type)].append(session.id)
    failed: dict[tuple[int, int, str], int] = defaultdict(int)
    for failure in failures:
        failed[(failure.class_id, failure.course_id, failure.type)] += 1

    expected = required_counts(data)
    for key in sorted(set(expected) | set(placed)):
        class_id, course_id, session_type = key
        wanted = expected.get(key, 0)
        accounted = len(placed.get(key, [])) + failed.get(key, 0)
        if accounted == wanted:
            continue
        school_class = class_by_id.get(class_id)
        course = course_by_id.get(course_id)
        label_class = school_class.name if school_class else f"class {class_id}"
        label_course = course.name if course else f"course {course_id}"
        if accounted < wanted:
            conflicts.append(
                ScheduleConflict(
                    code="MISSING_SESSION",
                    severity="critical",
                    message=(
                        f"{label_class} is missing {wanted - accounted} {session_type} "
                        f"session(s) of {label_course}."
                    ),
                    affected=[label_course, label_class],
                    session_ids=placed.get(key, []),
                )
            )
        else:
            conflicts.append(
                ScheduleConflict(
                    code="EXCESS_SESSION",
                    severity="warning",
                    message=(
                        f"{label_class} has {accounted - wanted} extra {session_type} "
                        f"session(s) of {label_course}."
                    ),
                    affected=[label_course, label_class],
                    session_ids=placed.get(key, []),
                )
            )

    return conflicts
