from __future__ import annotations

from collections import defaultdict

from classsync.core.models import (
    ScheduleConflict,
    ScheduleSession,
    SchedulingInput,
    ScoreReport,
    TimeSlot,
)
from classsync.core.objective import hours_outside_window, hours_past_max_end
from classsync.core.session_utils import build_slot_grid

CRITICAL_PENALTY = 15
WARNING_PENALTY = 5
SOFT_VIOLATION_PENALTY = 1


def _unique_events(sessions: list[ScheduleSession]) -> list[ScheduleSession]:
    seen: set[str] = set()
    events: list[ScheduleSession] = []
    for session in sessions:
        key = session.group_id or session.id
        if key in seen:
            continue
        seen.add(key)
        events.append(session)
    return events


def count_soft_violations(data: SchedulingInput, sessions: list[ScheduleSession]) -> int:
    """Soft-constraint misses visible in the final session set.

    Grouped sessions count once. Counted: events outside the preferred window,
    events finishing after the max end time and, when back-to-back avoidance
    is on, each adjacent pair in a teacher's day.
    """
    constraints = data.constraints
    events = _unique_events(sessions)

    violations = 0
    for event in events:
        if hours_outside_window(event.time_slot, constraints) > 0:
            violations += 1
        if hours_past_max_end(event.time_slot, constraints) > 0:
            violations += 1

    if constraints.avoid_back_to_back_sessions:
        teacher_days: dict[tuple[int, str], list[TimeSlot]] = defaultdict(list)
        for event in events:
            teacher_days[(event.teacher_id, event.time_slot.day)].append(event.time_slot)
        for slots in teacher_days.values():
            ordered = sorted(slots, key=lambda slot: slot.start_time)
            violations += sum(
                1
                for earlier, later in zip(ordered, ordered[1:])
                if earlier.end_time == later.start_time
            )

    return violations


def utilization_rate(data: SchedulingInput, sessions: list[ScheduleSession]) -> float:
    """Occupied (room, slot) pairs as a percentage of all (room, slot) pairs in the week."""
    room_by_id = {room.id: room for room in data.rooms}
    total = sum(
        len(build_slot_grid(data.constraints.session_length(room.type)))
        for room in data.rooms
    )
    if total == 0:
        return 0.0

    occupied = {
        (session.room_id, session.time_slot.day, session.time_slot.start_time)
        for session in sessions
        if session.room_id in room_by_id
    }
    return round(min(100.0, len(occupied) / total * 100.0), 2)


def score_schedule(
    data: SchedulingInput,
    sessions: list[ScheduleSession],
    conflicts: list[ScheduleConflict],
) -> ScoreReport:
    critical = sum(1 for conflict in conflicts if conflict.severity == "critical")
    warnings = sum(1 for conflict in conflicts if conflict.severity == "warning")
    soft_violations = count_soft_violations(data, sessions)

    penalty = (
        critical * CRITICAL_PENALTY
        + warnings * WARNING_PENALTY
        + soft_violations * SOFT_VIOLATION_PENALTY
    )

    return ScoreReport(
        score=max(0, 100 - penalty),
        utilization_rate=utilization_rate(data, sessions),
        critical_conflicts=critical,
        warning_conflicts=warnings,
        soft_violations=soft_violations,
    )


def total_hours(sessions: list[ScheduleSession]) -> int:
    return sum(event.time_slot.duration for event in _unique_events(sessions))
