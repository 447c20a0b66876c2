from __future__ import annotations

from collections import Counter, defaultdict

from classsync.core.models import SchedulingInput, ValidationIssue


class ScheduleInputError(ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        summary = "; ".join(issue.message for issue in issues)
        super().__init__(f"Scheduling input is invalid: {summary}")


def _duplicate_ids(label: str, ids: list[int]) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            code="DUPLICATE_ID",
            message=f"{label} id {entity_id} appears {count} times.",
            details={"entity": label, "id": entity_id},
        )
        for entity_id, count in sorted(Counter(ids).items())
        if count > 1
    ]


def check_input(data: SchedulingInput) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    issues.extend(_duplicate_ids("class", [item.id for item in data.classes]))
    issues.extend(_duplicate_ids("course", [course.id for course in data.courses]))
    issues.extend(_duplicate_ids("teacher", [teacher.id for teacher in data.teachers]))
    issues.extend(_duplicate_ids("room", [room.id for room in data.rooms]))

    class_ids = {item.id for item in data.classes}
    course_ids = {course.id for course in data.courses}
    teacher_ids = {teacher.id for teacher in data.teachers}

    seen_links: set[tuple[int, int]] = set()
    for link in data.class_courses:
        if link.class_id not in class_ids:
            issues.append(
                ValidationIssue(
                    code="UNKNOWN_CLASS",
                    message=f"Class-course link references unknown class {link.class_id}.",
                    details={"class_id": link.class_id, "course_id": link.course_id},
                )
            )
        if link.course_id not in course_ids:
            issues.append(
                ValidationIssue(
                    code="UNKNOWN_COURSE",
                    message=(
                        f"Class {link.class_id} references unknown course {link.course_id}."
                    ),
                    details={"class_id": link.class_id, "course_id": link.course_id},
                )
            )
        key = (link.class_id, link.course_id)
        if key in seen_links:
            issues.append(
                ValidationIssue(
                    code="DUPLICATE_CLASS_COURSE",
                    message=(
                        f"Course {link.course_id} is linked to class {link.class_id} more than once."
                    ),
                    details={"class_id": link.class_id, "course_id": link.course_id},
                )
            )
        seen_links.add(key)

    holders: dict[tuple[int, str], set[int]] = defaultdict(set)
    for assignment in data.course_assignments:
        if assignment.teacher_id not in teacher_ids:
            issues.append(
                ValidationIssue(
                    code="UNKNOWN_TEACHER",
                    message=(
                        f"Course assignment references unknown teacher {assignment.teacher_id}."
                    ),
                    details=assignment.model_dump(),
                )
            )
        if assignment.course_id not in course_ids:
            issues.append(
                ValidationIssue(
                    code="UNKNOWN_COURSE",
                    message=(
                        f"Course assignment references unknown course {assignment.course_id}."
                    ),
                    details=assignment.model_dump(),
                )
            )
        holders[(assignment.course_id, assignment.assignment_type)].add(assignment.teacher_id)

    for (course_id, assignment_type), teachers in sorted(holders.items()):
        if len(teachers) > 1:
            issues.append(
                ValidationIssue(
                    code="STACKED_ASSIGNMENT",
                    message=(
                        f"Course {course_id} {assignment_type} is held by "
                        f"{len(teachers)} teachers; only one may hold it."
                    ),
                    details={
                        "course_id": course_id,
                        "assignment_type": assignment_type,
                        "teacher_ids": sorted(teachers),
                    },
                )
            )

    for course in data.courses:
        if course.lecture_hours + course.seminar_hours != course.hours_per_week:
            issues.append(
                ValidationIssue(
                    code="HOURS_SPLIT_MISMATCH",
                    level="warning",
                    message=(
                        f"Course {course.name} splits {course.lecture_hours}h lecture + "
                        f"{course.seminar_hours}h seminar but lists {course.hours_per_week}h "
                        "per week; the split is used."
                    ),
                    details={"course_id": course.id},
                )
            )

    return issues


def ensure_valid_input(data: SchedulingInput) -> list[ValidationIssue]:
    """Raises ScheduleInputError on any error-level issue, returns the warnings."""
    issues = check_input(data)
    errors = [issue for issue in issues if issue.level == "error"]
    if errors:
        raise ScheduleInputError(errors)
    return [issue for issue in issues if issue.level == "warning"]
