from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

Weekday = Literal["Mon", "Tue", "Wed", "Thu", "Fri"]
SessionType = Literal["lecture", "seminar"]
Severity = Literal["warning", "critical"]

WEEKDAYS: tuple[Weekday, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri")


class Teacher(BaseModel):
    id: int
    name: str
    email: str | None = None


class Course(BaseModel):
    id: int
    name: str
    hours_per_week: int = Field(default=4, ge=0)
    lecture_hours: int = Field(default=2, ge=0)
    seminar_hours: int = Field(default=2, ge=0)


class SchoolClass(BaseModel):
    id: int
    name: str
    year: int = Field(default=1, ge=1)
    semester: int = Field(default=1, ge=1)
    student_count: int = Field(
        default=0,
        ge=0,
        description="Used for large-class room narrowing and grouped-session capacity",
    )


class Room(BaseModel):
    id: int
    name: str
    type: SessionType
    capacity: int = Field(default=50, ge=1)


class CourseAssignment(BaseModel):
    teacher_id: int
    course_id: int
    assignment_type: SessionType


class ClassCourseLink(BaseModel):
    class_id: int
    course_id: int


class TimeSlot(BaseModel):
    day: Weekday
    start_time: int = Field(..., ge=0, le=23, description="Start hour, e.g. 9")
    duration: int = Field(..., ge=1, description="Length in hours")

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

    def overlaps(self, other: TimeSlot) -> bool:
        return (
            self.day == other.day
            and self.start_time < other.end_time
            and other.start_time < self.end_time
        )


class ScheduleConstraints(BaseModel):
    preferred_start_time: int = Field(default=9, ge=0, le=24)
    preferred_end_time: int = Field(default=13, ge=0, le=24)
    max_end_time: int = Field(default=15, ge=0, le=24)
    max_teacher_hours_per_day: int = Field(default=6, ge=1, le=24)
    avoid_back_to_back_sessions: bool = False
    use_auditoriums_for_large_classes: bool = False
    large_class_threshold: int = Field(default=60, ge=1)
    lecture_session_length: int = Field(default=2, ge=1, le=8)
    seminar_session_length: int = Field(default=2, ge=1, le=8)
    avoid_splitting_sessions: bool = False
    prioritize_morning_lectures: bool = False
    group_same_course_classes: bool = False
    distribute_evenly_across_week: bool = False

    @model_validator(mode="after")
    def _check_preferred_window(self) -> ScheduleConstraints:
        if self.preferred_start_time >= self.preferred_end_time:
            raise ValueError("preferred_start_time must be earlier than preferred_end_time")
        return self

    def session_length(self, session_type: SessionType) -> int:
        if session_type == "lecture":
            return self.lecture_session_length
        return self.seminar_session_length


class SoftConstraintWeights(BaseModel):
    preferred_window: int = Field(default=40, ge=0)
    outside_window_per_hour: int = Field(default=10, ge=0)
    late_finish_per_hour: int = Field(default=50, ge=0)
    teacher_overload: int = Field(default=60, ge=0)
    back_to_back: int = Field(default=40, ge=0)
    day_imbalance: int = Field(default=15, ge=0)
    morning_lecture: int = Field(default=30, ge=0)
    grouping: int = Field(default=80, ge=0)


class SchedulingInput(BaseModel):
    classes: list[SchoolClass]
    courses: list[Course]
    teachers: list[Teacher]
    rooms: list[Room]
    course_assignments: list[CourseAssignment] = Field(default_factory=list)
    class_courses: list[ClassCourseLink] = Field(default_factory=list)
    constraints: ScheduleConstraints = Field(default_factory=ScheduleConstraints)
    weights: SoftConstraintWeights = Field(default_factory=SoftConstraintWeights)


class ScheduleSession(BaseModel):
    id: str
    class_id: int
    course_id: int
    teacher_id: int
    room_id: int
    type: SessionType
    time_slot: TimeSlot
    group_id: str | None = Field(
        default=None,
        description="Sessions sharing a group id are one teaching event attended by several classes",
    )
    class_name: str = ""
    course_name: str = ""
    teacher_name: str = ""
    room_name: str = ""


class PlacementFailure(BaseModel):
    requirement_id: str
    class_id: int
    course_id: int
    type: SessionType
    class_name: str
    course_name: str
    reason: str


class ScheduleConflict(BaseModel):
    code: str
    severity: Severity
    message: str
    affected: list[str] = Field(default_factory=list)
    session_ids: list[str] = Field(default_factory=list)


class ValidationIssue(BaseModel):
    code: str
    level: Literal["error", "warning"] = "error"
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ScoreReport(BaseModel):
    score: int = Field(..., ge=0, le=100)
    utilization_rate: float = Field(..., ge=0, le=100)
    critical_conflicts: int = 0
    warning_conflicts: int = 0
    soft_violations: int = 0


class OptimizationRecord(BaseModel):
    mode: Literal["fix", "refine"]
    applied_at: datetime
    score_before: int
    score_after: int
    released_sessions: int = 0
    target_conflicts: list[str] = Field(default_factory=list)
    weight_adjustments: dict[str, int] = Field(default_factory=dict)


class ScheduleMetadata(BaseModel):
    generated_at: datetime
    utilization_rate: float
    total_hours: int
    sessions_required: int
    sessions_placed: int
    soft_violations: int
    constraints: ScheduleConstraints
    weights: SoftConstraintWeights
    notes: list[str] = Field(default_factory=list)
    optimization_history: list[OptimizationRecord] = Field(default_factory=list)


class GeneratedSchedule(BaseModel):
    sessions: list[ScheduleSession] = Field(default_factory=list)
    conflicts: list[ScheduleConflict] = Field(default_factory=list)
    unplaced: list[PlacementFailure] = Field(default_factory=list)
    score: int = Field(..., ge=0, le=100)
    metadata: ScheduleMetadata


class OptimizationRequest(BaseModel):
    mode: Literal["fix", "refine"]
    target_conflicts: list[str] = Field(
        default_factory=list,
        description="Conflict messages to resolve; empty means every conflict",
    )
    weight_adjustments: dict[str, int] = Field(default_factory=dict)


class OptimizeRequest(BaseModel):
    data: SchedulingInput
    schedule: GeneratedSchedule
    request: OptimizationRequest


class DetectRequest(BaseModel):
    data: SchedulingInput
    sessions: list[ScheduleSession]


class DetectResponse(BaseModel):
    conflicts: list[ScheduleConflict]
    report: ScoreReport


class ScenarioConfig(BaseModel):
    name: str
    constraints: ScheduleConstraints = Field(default_factory=ScheduleConstraints)
    weights: SoftConstraintWeights = Field(default_factory=SoftConstraintWeights)


class CompareRequest(BaseModel):
    data: SchedulingInput
    scenarios: list[ScenarioConfig]


class ScenarioResult(BaseModel):
    name: str
    schedule: GeneratedSchedule


class CompareResponse(BaseModel):
    scenarios: list[ScenarioResult]
    best_scenario: str | None = None


class ScopeFilter(BaseModel):
    scope: Literal["all", "teacher", "class", "room"] = "all"
    entity_id: int | None = None

    @model_validator(mode="after")
    def _check_entity(self) -> ScopeFilter:
        if self.scope != "all" and self.entity_id is None:
            raise ValueError(f"entity_id is required for scope '{self.scope}'")
        return self


class ScopeFilterRequest(BaseModel):
    schedule: GeneratedSchedule
    scope_filter: ScopeFilter


EntityKind = Literal["teacher", "course", "class", "room"]


class EntityUpdateRequest(BaseModel):
    entity: dict[str, Any]
    changes: dict[str, Any] = Field(
        default_factory=dict,
        description="Only the fields to change; omitted fields keep their current value",
    )


class ReassignRequest(BaseModel):
    assignments: list[CourseAssignment]
    teacher_id: int
    course_id: int
    assignment_type: SessionType
