from __future__ import annotations

from classsync.core.models import WEEKDAYS, GeneratedSchedule, ScheduleSession, ScopeFilter

_SCOPE_FIELDS = {
    "teacher": "teacher_id",
    "class": "class_id",
    "room": "room_id",
}


def filter_sessions(schedule: GeneratedSchedule, scope_filter: ScopeFilter) -> list[ScheduleSession]:
    """Sessions visible under a scope, in timetable order (day, start, room, class)."""
    sessions = schedule.sessions
    if scope_filter.scope != "all":
        field_name = _SCOPE_FIELDS[scope_filter.scope]
        sessions = [
            session
            for session in sessions
            if getattr(session, field_name) == scope_filter.entity_id
        ]

    return sorted(
        sessions,
        key=lambda session: (
            WEEKDAYS.index(session.time_slot.day),
            session.time_slot.start_time,
            session.room_id,
            session.class_id,
        ),
    )
