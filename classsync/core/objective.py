from __future__ import annotations

from collections.abc import Iterable, Mapping

from classsync.core.models import (
    WEEKDAYS,
    ScheduleConstraints,
    SessionType,
    SoftConstraintWeights,
    TimeSlot,
)

MORNING_CUTOFF_HOUR = 12


def hours_outside_window(slot: TimeSlot, constraints: ScheduleConstraints) -> int:
    overlap = min(slot.end_time, constraints.preferred_end_time) - max(
        slot.start_time, constraints.preferred_start_time
    )
    return slot.duration - max(0, overlap)


def hours_past_max_end(slot: TimeSlot, constraints: ScheduleConstraints) -> int:
    return max(0, slot.end_time - constraints.max_end_time)


def is_back_to_back(slot: TimeSlot, others: Iterable[TimeSlot]) -> bool:
    return any(
        other.day == slot.day
        and (other.end_time == slot.start_time or other.start_time == slot.end_time)
        for other in others
    )


def candidate_local_score(
    *,
    slot: TimeSlot,
    session_type: SessionType,
    constraints: ScheduleConstraints,
    weights: SoftConstraintWeights,
    teacher_day_hours: int,
    added_teacher_hours: int,
    teacher_day_slots: Iterable[TimeSlot],
    class_day_counts: Mapping[str, int],
    joins_group: bool = False,
) -> int:
    score = 0

    outside = hours_outside_window(slot, constraints)
    if outside == 0:
        score += weights.preferred_window
    else:
        score -= outside * weights.outside_window_per_hour

    score -= hours_past_max_end(slot, constraints) * weights.late_finish_per_hour

    if teacher_day_hours + added_teacher_hours > constraints.max_teacher_hours_per_day:
        score -= weights.teacher_overload

    if (
        constraints.avoid_back_to_back_sessions
        and not joins_group
        and is_back_to_back(slot, teacher_day_slots)
    ):
        score -= weights.back_to_back

    if constraints.distribute_evenly_across_week:
        lightest = min(class_day_counts.get(day, 0) for day in WEEKDAYS)
        score -= (class_day_counts.get(slot.day, 0) - lightest) * weights.day_imbalance

    if (
        constraints.prioritize_morning_lectures
        and session_type == "lecture"
        and slot.start_time < MORNING_CUTOFF_HOUR
    ):
        score += weights.morning_lecture

    if joins_group:
        score += weights.grouping

    return score
