from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterator
from dataclasses import dataclass

from pydantic import ValidationError

from classsync.core.models import (
    ClassCourseLink,
    Course,
    CourseAssignment,
    Room,
    ScheduleConstraints,
    SchedulingInput,
    SchoolClass,
    Teacher,
)


class CsvIngestionError(ValueError):
    pass


@dataclass
class _Sheet:
    """One uploaded CSV file; data rows are numbered from 2 as in a spreadsheet."""

    label: str
    rows: list[dict[str, str]]

    @classmethod
    def parse(cls, file_bytes: bytes, label: str) -> _Sheet:
        if not file_bytes:
            raise CsvIngestionError(f"{label} is empty.")

        try:
            decoded = file_bytes.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise CsvIngestionError(f"{label} is not valid UTF-8.") from exc

        reader = csv.DictReader(io.StringIO(decoded))
        if not reader.fieldnames:
            raise CsvIngestionError(f"{label} has no header row.")

        rows = [
            {
                key.strip(): "" if value is None else str(value).strip()
                for key, value in raw.items()
                if key is not None
            }
            for raw in reader
        ]
        return cls(label=label, rows=rows)

    def numbered(self) -> Iterator[tuple[int, dict[str, str]]]:
        return enumerate(self.rows, start=2)

    def require_rows(self) -> _Sheet:
        if not self.rows:
            raise CsvIngestionError(f"{self.label} has no data rows.")
        return self

    def text(self, row: dict[str, str], row_num: int, field: str) -> str:
        value = row.get(field, "")
        if value == "":
            raise CsvIngestionError(
                f"Missing required value in {self.label} row {row_num}: '{field}'."
            )
        return value

    def integer(
        self,
        row: dict[str, str],
        row_num: int,
        field: str,
        default: int | None = None,
    ) -> int:
        value = row.get(field, "")
        if value == "" and default is not None:
            return default
        value = self.text(row, row_num, field)
        try:
            return int(value)
        except ValueError as exc:
            raise CsvIngestionError(
                f"Invalid integer in {self.label} row {row_num} for '{field}': '{value}'."
            ) from exc


def _classes(sheet: _Sheet) -> list[SchoolClass]:
    return [
        SchoolClass(
            id=sheet.integer(row, num, "id"),
            name=sheet.text(row, num, "name"),
            year=sheet.integer(row, num, "year", 1),
            semester=sheet.integer(row, num, "semester", 1),
            student_count=sheet.integer(row, num, "student_count", 0),
        )
        for num, row in sheet.numbered()
    ]


def _courses(sheet: _Sheet) -> list[Course]:
    courses: list[Course] = []
    for num, row in sheet.numbered():
        lecture_hours = sheet.integer(row, num, "lecture_hours", 2)
        seminar_hours = sheet.integer(row, num, "seminar_hours", 2)
        courses.append(
            Course(
                id=sheet.integer(row, num, "id"),
                name=sheet.text(row, num, "name"),
                hours_per_week=sheet.integer(
                    row, num, "hours_per_week", lecture_hours + seminar_hours
                ),
                lecture_hours=lecture_hours,
                seminar_hours=seminar_hours,
            )
        )
    return courses


def _teachers(sheet: _Sheet) -> list[Teacher]:
    return [
        Teacher(
            id=sheet.integer(row, num, "id"),
            name=sheet.text(row, num, "name"),
            email=row.get("email") or None,
        )
        for num, row in sheet.numbered()
    ]


def _rooms(sheet: _Sheet) -> list[Room]:
    return [
        Room(
            id=sheet.integer(row, num, "id"),
            name=sheet.text(row, num, "name"),
            type=sheet.text(row, num, "type").lower(),
            capacity=sheet.integer(row, num, "capacity", 50),
        )
        for num, row in sheet.numbered()
    ]


def _course_assignments(sheet: _Sheet) -> list[CourseAssignment]:
    return [
        CourseAssignment(
            teacher_id=sheet.integer(row, num, "teacher_id"),
            course_id=sheet.integer(row, num, "course_id"),
            assignment_type=sheet.text(row, num, "assignment_type").lower(),
        )
        for num, row in sheet.numbered()
    ]


def _class_courses(sheet: _Sheet) -> list[ClassCourseLink]:
    return [
        ClassCourseLink(
            class_id=sheet.integer(row, num, "class_id"),
            course_id=sheet.integer(row, num, "course_id"),
        )
        for num, row in sheet.numbered()
    ]


def _constraints(constraints_json: str | None) -> ScheduleConstraints:
    if not constraints_json or not constraints_json.strip():
        return ScheduleConstraints()

    try:
        raw = json.loads(constraints_json)
    except json.JSONDecodeError as exc:
        raise CsvIngestionError("constraints_json is not valid JSON.") from exc
    if not isinstance(raw, dict):
        raise CsvIngestionError("constraints_json must be a JSON object.")

    try:
        return ScheduleConstraints.model_validate(raw)
    except ValidationError as exc:
        raise CsvIngestionError(f"constraints_json is invalid: {exc}") from exc


def load_scheduling_input_from_csv_bytes(
    *,
    classes_csv: bytes,
    courses_csv: bytes,
    teachers_csv: bytes,
    rooms_csv: bytes,
    course_assignments_csv: bytes,
    class_courses_csv: bytes,
    constraints_json: str | None = None,
) -> SchedulingInput:
    """Builds one input snapshot from the six uploaded tables.

    Classes, courses and rooms must have at least one row; teachers,
    assignments and links may be empty, which later shows up as unplaced
    sessions rather than an ingestion error.
    """
    classes = _Sheet.parse(classes_csv, "classes.csv").require_rows()
    courses = _Sheet.parse(courses_csv, "courses.csv").require_rows()
    teachers = _Sheet.parse(teachers_csv, "teachers.csv")
    rooms = _Sheet.parse(rooms_csv, "rooms.csv").require_rows()
    assignments = _Sheet.parse(course_assignments_csv, "course_assignments.csv")
    links = _Sheet.parse(class_courses_csv, "class_courses.csv")

    return SchedulingInput(
        classes=_classes(classes),
        courses=_courses(courses),
        teachers=_teachers(teachers),
        rooms=_rooms(rooms),
        course_assignments=_course_assignments(assignments),
        class_courses=_class_courses(links),
        constraints=_constraints(constraints_json),
    )
