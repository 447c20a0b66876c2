from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from time import perf_counter

from classsync.core.eligibility import EligibilityResolver
from classsync.core.models import (
    WEEKDAYS,
    PlacementFailure,
    Room,
    ScheduleSession,
    SchedulingInput,
    Teacher,
    TimeSlot,
)
from classsync.core.objective import candidate_local_score
from classsync.core.session_utils import (
    RequiredSession,
    build_slot_grid,
    expand_required_sessions,
)

logger = logging.getLogger(__name__)


@dataclass
class AllocationOutput:
    sessions: list[ScheduleSession]
    failures: list[PlacementFailure]
    required: list[RequiredSession]
    notes: list[str]
    runtime_seconds: float


@dataclass
class _Event:
    course_id: int
    session_type: str
    teacher_id: int
    room_id: int
    room_capacity: int
    slot: TimeSlot
    class_ids: list[int]
    students: int
    group_id: str | None = None


@dataclass
class _Placement:
    session_id: str
    event_index: int
    class_id: int
    pinned: ScheduleSession | None = None
    requirement: RequiredSession | None = None


@dataclass
class _Candidate:
    order: tuple[int, int, int, int, int]
    score: int
    slot: TimeSlot
    room: Room | None = None
    teacher: Teacher | None = None
    event_index: int | None = None


@dataclass
class _Occupancy:
    """Who is busy when, keyed by (entity id, day)."""

    teachers: dict[tuple[int, str], list[tuple[TimeSlot, int]]] = field(
        default_factory=lambda: defaultdict(list)
    )
    rooms: dict[tuple[int, str], list[tuple[TimeSlot, int]]] = field(
        default_factory=lambda: defaultdict(list)
    )
    classes: dict[tuple[int, str], list[TimeSlot]] = field(
        default_factory=lambda: defaultdict(list)
    )
    teacher_hours: dict[tuple[int, str], int] = field(default_factory=lambda: defaultdict(int))
    class_day_counts: dict[int, dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: defaultdict(int))
    )

    def teacher_free(self, teacher_id: int, slot: TimeSlot) -> bool:
        return not any(
            slot.overlaps(other) for other, _ in self.teachers[(teacher_id, slot.day)]
        )

    def room_free(self, room_id: int, slot: TimeSlot) -> bool:
        return not any(slot.overlaps(other) for other, _ in self.rooms[(room_id, slot.day)])

    def class_free(self, class_id: int, slot: TimeSlot) -> bool:
        return not any(slot.overlaps(other) for other in self.classes[(class_id, slot.day)])

    def book_event(self, event: _Event, event_index: int) -> None:
        key_day = event.slot.day
        self.teachers[(event.teacher_id, key_day)].append((event.slot, event_index))
        self.rooms[(event.room_id, key_day)].append((event.slot, event_index))
        self.teacher_hours[(event.teacher_id, key_day)] += event.slot.duration

    def book_class(self, class_id: int, slot: TimeSlot) -> None:
        self.classes[(class_id, slot.day)].append(slot)
        self.class_day_counts[class_id][slot.day] += 1


def _group_id(event: _Event) -> str:
    return (
        f"group::{event.course_id}::{event.session_type}::"
        f"{event.slot.day}::{event.slot.start_time}::{event.room_id}"
    )


def _register_pinned(
    pinned: list[ScheduleSession],
    events: list[_Event],
    placements: list[_Placement],
    occupancy: _Occupancy,
    room_capacity: dict[int, int],
    class_size: dict[int, int],
) -> None:
    event_by_group: dict[str, int] = {}
    for session in pinned:
        event_index = event_by_group.get(session.group_id) if session.group_id else None
        if event_index is None:
            event = _Event(
                course_id=session.course_id,
                session_type=session.type,
                teacher_id=session.teacher_id,
                room_id=session.room_id,
                room_capacity=room_capacity.get(session.room_id, 0),
                slot=session.time_slot,
                class_ids=[],
                students=0,
                group_id=session.group_id,
            )
            events.append(event)
            event_index = len(events) - 1
            occupancy.book_event(event, event_index)
            if session.group_id:
                event_by_group[session.group_id] = event_index
        events[event_index].class_ids.append(session.class_id)
        events[event_index].students += class_size.get(session.class_id, 0)
        occupancy.book_class(session.class_id, session.time_slot)
        placements.append(
            _Placement(
                session_id=session.id,
                event_index=event_index,
                class_id=session.class_id,
                pinned=session,
            )
        )


def _outstanding_requirements(
    required: list[RequiredSession],
    pinned: list[ScheduleSession],
) -> list[RequiredSession]:
    """Drops requirements already realised by pinned sessions.

    Exact id matches are consumed first; leftover pinned sessions then cover
    requirements of the same (class, course, type) in placement order.
    """
    pinned_ids = {session.id for session in pinned}
    remaining = [item for item in required if item.requirement_id not in pinned_ids]
    matched_ids = {item.requirement_id for item in required} & pinned_ids

    spare: dict[tuple[int, int, str], int] = defaultdict(int)
    for session in pinned:
        if session.id not in matched_ids:
            spare[(session.class_id, session.course_id, session.type)] += 1

    outstanding: list[RequiredSession] = []
    for item in remaining:
        key = (item.class_id, item.course_id, item.session_type)
        if spare[key] > 0:
            spare[key] -= 1
            continue
        outstanding.append(item)
    return outstanding


def _join_candidates(
    requirement: RequiredSession,
    teachers: list[Teacher],
    events: list[_Event],
    occupancy: _Occupancy,
    data: SchedulingInput,
) -> list[_Candidate]:
    teacher_ids = {teacher.id for teacher in teachers}
    room_ids = {room.id for room in data.rooms}
    candidates: list[_Candidate] = []
    for event_index, event in enumerate(events):
        # pinned events may point at rooms no longer in the snapshot
        if (
            event.room_id not in room_ids
            or event.course_id != requirement.course_id
            or event.session_type != requirement.session_type
            or event.teacher_id not in teacher_ids
            or requirement.class_id in event.class_ids
            or event.slot.duration != requirement.duration
        ):
            continue
        if event.students + requirement.student_count > event.room_capacity:
            continue
        if not occupancy.class_free(requirement.class_id, event.slot):
            continue

        score = candidate_local_score(
            slot=event.slot,
            session_type=requirement.session_type,
            constraints=data.constraints,
            weights=data.weights,
            teacher_day_hours=occupancy.teacher_hours[(event.teacher_id, event.slot.day)],
            added_teacher_hours=0,
            teacher_day_slots=[],
            class_day_counts=occupancy.class_day_counts[requirement.class_id],
            joins_group=True,
        )
        candidates.append(
            _Candidate(
                order=(
                    WEEKDAYS.index(event.slot.day),
                    event.slot.start_time,
                    event.room_id,
                    event.teacher_id,
                    0,
                ),
                score=score,
                slot=event.slot,
                event_index=event_index,
            )
        )
    return candidates


def _fresh_candidates(
    requirement: RequiredSession,
    teachers: list[Teacher],
    rooms: list[Room],
    occupancy: _Occupancy,
    data: SchedulingInput,
) -> list[_Candidate]:
    grid = build_slot_grid(data.constraints.session_length(requirement.session_type))
    candidates: list[_Candidate] = []
    for grid_slot in grid:
        slot = TimeSlot(
            day=grid_slot.day,
            start_time=grid_slot.start_time,
            duration=requirement.duration,
        )
        if not occupancy.class_free(requirement.class_id, slot):
            continue
        for room in rooms:
            if not occupancy.room_free(room.id, slot):
                continue
            for teacher in teachers:
                if not occupancy.teacher_free(teacher.id, slot):
                    continue
                score = candidate_local_score(
                    slot=slot,
                    session_type=requirement.session_type,
                    constraints=data.constraints,
                    weights=data.weights,
                    teacher_day_hours=occupancy.teacher_hours[(teacher.id, slot.day)],
                    added_teacher_hours=slot.duration,
                    teacher_day_slots=[
                        other for other, _ in occupancy.teachers[(teacher.id, slot.day)]
                    ],
                    class_day_counts=occupancy.class_day_counts[requirement.class_id],
                )
                candidates.append(
                    _Candidate(
                        order=(
                            WEEKDAYS.index(slot.day),
                            slot.start_time,
                            room.id,
                            teacher.id,
                            1,
                        ),
                        score=score,
                        slot=slot,
                        room=room,
                        teacher=teacher,
                    )
                )
    return candidates


def _select_best(candidates: list[_Candidate]) -> _Candidate | None:
    best: _Candidate | None = None
    for candidate in sorted(candidates, key=lambda item: item.order):
        if best is None or candidate.score > best.score:
            best = candidate
    return best


def _failure(requirement: RequiredSession, reason: str) -> PlacementFailure:
    return PlacementFailure(
        requirement_id=requirement.requirement_id,
        class_id=requirement.class_id,
        course_id=requirement.course_id,
        type=requirement.session_type,
        class_name=requirement.class_name,
        course_name=requirement.course_name,
        reason=reason,
    )


def allocate(
    data: SchedulingInput,
    pinned: list[ScheduleSession] | None = None,
) -> AllocationOutput:
    """Greedily places every required session into a (day, slot, room, teacher) tuple.

    Sessions in ``pinned`` are kept as they are and count as occupied. A
    requirement with no tuple left after the hard checks becomes a
    PlacementFailure and allocation continues with the next one.
    """
    start = perf_counter()
    pinned = list(pinned or [])

    resolver = EligibilityResolver(data)
    teacher_by_id = {teacher.id: teacher for teacher in data.teachers}
    room_by_id = {room.id: room for room in data.rooms}

    required = expand_required_sessions(data)
    outstanding = _outstanding_requirements(required, pinned)

    events: list[_Event] = []
    placements: list[_Placement] = []
    occupancy = _Occupancy()
    _register_pinned(
        pinned,
        events,
        placements,
        occupancy,
        {room.id: room.capacity for room in data.rooms},
        {item.id: item.student_count for item in data.classes},
    )
    used_ids = {placement.session_id for placement in placements}

    failures: list[PlacementFailure] = []
    grouped_joins = 0

    for requirement in outstanding:
        teachers = resolver.eligible_teachers(requirement.course_id, requirement.session_type)
        if not teachers:
            failures.append(
                _failure(
                    requirement,
                    f"no teacher is assigned to {requirement.course_name} "
                    f"{requirement.session_type}",
                )
            )
            continue

        rooms = resolver.eligible_rooms(requirement.session_type, requirement.student_count)
        if not rooms:
            failures.append(
                _failure(requirement, f"no {requirement.session_type} rooms are available")
            )
            continue

        candidates: list[_Candidate] = []
        if data.constraints.group_same_course_classes and requirement.session_type == "lecture":
            candidates.extend(_join_candidates(requirement, teachers, events, occupancy, data))
        candidates.extend(_fresh_candidates(requirement, teachers, rooms, occupancy, data))

        best = _select_best(candidates)
        if best is None:
            failures.append(_failure(requirement, "no free time slot, room and teacher remain"))
            logger.debug("Placement failed for %s", requirement.requirement_id)
            continue

        if best.event_index is not None:
            event_index = best.event_index
            event = events[event_index]
            event.class_ids.append(requirement.class_id)
            event.students += requirement.student_count
            event.group_id = event.group_id or _group_id(event)
            grouped_joins += 1
        else:
            event = _Event(
                course_id=requirement.course_id,
                session_type=requirement.session_type,
                teacher_id=best.teacher.id,
                room_id=best.room.id,
                room_capacity=best.room.capacity,
                slot=best.slot,
                class_ids=[requirement.class_id],
                students=requirement.student_count,
            )
            events.append(event)
            event_index = len(events) - 1
            occupancy.book_event(event, event_index)
        occupancy.book_class(requirement.class_id, best.slot)

        session_id = requirement.requirement_id
        suffix = 1
        while session_id in used_ids:
            suffix += 1
            session_id = f"{requirement.requirement_id}-{suffix}"
        used_ids.add(session_id)

        placements.append(
            _Placement(
                session_id=session_id,
                event_index=event_index,
                class_id=requirement.class_id,
                requirement=requirement,
            )
        )

    sessions: list[ScheduleSession] = []
    for placement in placements:
        event = events[placement.event_index]
        if placement.pinned is not None:
            session = placement.pinned
            if event.group_id and session.group_id != event.group_id:
                session = session.model_copy(update={"group_id": event.group_id})
            sessions.append(session)
            continue

        requirement = placement.requirement
        teacher = teacher_by_id[event.teacher_id]
        room = room_by_id[event.room_id]
        sessions.append(
            ScheduleSession(
                id=placement.session_id,
                class_id=requirement.class_id,
                course_id=requirement.course_id,
                teacher_id=teacher.id,
                room_id=room.id,
                type=requirement.session_type,
                time_slot=event.slot,
                group_id=event.group_id,
                class_name=requirement.class_name,
                course_name=requirement.course_name,
                teacher_name=teacher.name,
                room_name=room.name,
            )
        )

    notes = [
        "Sessions are placed greedily in lecture-first, class, course order "
        "and ranked by weighted soft constraints.",
    ]
    if pinned:
        notes.append(f"{len(pinned)} pinned session(s) were kept in place.")
    if grouped_joins:
        notes.append(f"{grouped_joins} session(s) joined an existing grouped event.")
    if failures:
        notes.append(f"{len(failures)} session(s) could not be placed.")

    return AllocationOutput(
        sessions=sessions,
        failures=failures,
        required=required,
        notes=notes,
        runtime_seconds=perf_counter() - start,
    )
