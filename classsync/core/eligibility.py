from __future__ import annotations

from collections import defaultdict

from classsync.core.models import Room, SchedulingInput, SessionType, Teacher


class EligibilityResolver:
    """Answers which teachers and rooms may host a session.

    Qualification is explicit: only a CourseAssignment for the exact
    (course, type) pair makes a teacher eligible. Results are ordered by id.
    """

    def __init__(self, data: SchedulingInput) -> None:
        self._constraints = data.constraints
        teacher_by_id = {teacher.id: teacher for teacher in data.teachers}

        self._teachers: dict[tuple[int, SessionType], list[Teacher]] = defaultdict(list)
        for assignment in data.course_assignments:
            teacher = teacher_by_id.get(assignment.teacher_id)
            if teacher is None:
                continue
            bucket = self._teachers[(assignment.course_id, assignment.assignment_type)]
            if teacher not in bucket:
                bucket.append(teacher)
        for bucket in self._teachers.values():
            bucket.sort(key=lambda item: item.id)

        self._rooms: dict[SessionType, list[Room]] = defaultdict(list)
        for room in sorted(data.rooms, key=lambda item: item.id):
            self._rooms[room.type].append(room)

    def eligible_teachers(self, course_id: int, assignment_type: SessionType) -> list[Teacher]:
        return list(self._teachers.get((course_id, assignment_type), []))

    def is_eligible(self, teacher_id: int, course_id: int, assignment_type: SessionType) -> bool:
        return any(
            teacher.id == teacher_id
            for teacher in self._teachers.get((course_id, assignment_type), [])
        )

    def eligible_rooms(
        self,
        assignment_type: SessionType,
        class_size: int | None = None,
    ) -> list[Room]:
        rooms = list(self._rooms.get(assignment_type, []))
        if (
            class_size is None
            or not self._constraints.use_auditoriums_for_large_classes
            or class_size <= self._constraints.large_class_threshold
        ):
            return rooms

        large_enough = [room for room in rooms if room.capacity >= class_size]
        return large_enough or rooms
