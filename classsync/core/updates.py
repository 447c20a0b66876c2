from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from classsync.core.models import (
    Course,
    CourseAssignment,
    EntityKind,
    Room,
    SchoolClass,
    SessionType,
    Teacher,
)

EntityT = TypeVar("EntityT", bound=BaseModel)


class _EntityUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TeacherUpdate(_EntityUpdate):
    name: str | None = None
    email: str | None = None


class CourseUpdate(_EntityUpdate):
    name: str | None = None
    hours_per_week: int | None = Field(default=None, ge=0)
    lecture_hours: int | None = Field(default=None, ge=0)
    seminar_hours: int | None = Field(default=None, ge=0)


class ClassUpdate(_EntityUpdate):
    name: str | None = None
    year: int | None = Field(default=None, ge=1)
    semester: int | None = Field(default=None, ge=1)
    student_count: int | None = Field(default=None, ge=0)


class RoomUpdate(_EntityUpdate):
    name: str | None = None
    type: SessionType | None = None
    capacity: int | None = Field(default=None, ge=1)


UPDATE_MODELS: dict[type[BaseModel], type[BaseModel]] = {
    Teacher: TeacherUpdate,
    Course: CourseUpdate,
    SchoolClass: ClassUpdate,
    Room: RoomUpdate,
}

ENTITY_MODELS: dict[EntityKind, type[BaseModel]] = {
    "teacher": Teacher,
    "course": Course,
    "class": SchoolClass,
    "room": Room,
}


def apply_update(entity: EntityT, update: BaseModel) -> EntityT:
    """Returns a new entity with the fields set on ``update`` merged in.

    Only explicitly set fields are merged and the result is validated again,
    so the original entity is never modified.
    """
    expected = UPDATE_MODELS.get(type(entity))
    if expected is None or not isinstance(update, expected):
        raise TypeError(
            f"{type(update).__name__} cannot update {type(entity).__name__}"
        )
    merged = entity.model_dump()
    merged.update(update.model_dump(exclude_unset=True))
    return type(entity).model_validate(merged)


def reassign_teacher(
    assignments: list[CourseAssignment],
    teacher_id: int,
    course_id: int,
    assignment_type: SessionType,
) -> list[CourseAssignment]:
    """Gives (course, type) to ``teacher_id``, replacing any current holder."""
    kept = [
        assignment
        for assignment in assignments
        if not (
            assignment.course_id == course_id
            and assignment.assignment_type == assignment_type
        )
    ]
    kept.append(
        CourseAssignment(
            teacher_id=teacher_id,
            course_id=course_id,
            assignment_type=assignment_type,
        )
    )
    return kept


def update_entity(
    kind: EntityKind,
    entity: dict[str, Any],
    changes: dict[str, Any],
) -> BaseModel:
    """Validates a raw entity and a raw change set, then merges them."""
    entity_model = ENTITY_MODELS[kind]
    current = entity_model.model_validate(entity)
    update = UPDATE_MODELS[entity_model].model_validate(changes)
    return apply_update(current, update)
