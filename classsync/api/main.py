from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from classsync.core.conflicts import detect_conflicts
from classsync.core.csv_ingestion import CsvIngestionError, load_scheduling_input_from_csv_bytes
from classsync.core.integrity import ScheduleInputError, ensure_valid_input
from classsync.core.metrics import score_schedule
from classsync.core.models import (
    CompareRequest,
    CompareResponse,
    CourseAssignment,
    DetectRequest,
    DetectResponse,
    EntityKind,
    EntityUpdateRequest,
    GeneratedSchedule,
    OptimizeRequest,
    ReassignRequest,
    ScheduleSession,
    SchedulingInput,
    ScopeFilterRequest,
)
from classsync.core.scopes import filter_sessions
from classsync.core.solver import compare_scenarios, generate_schedule, optimize_schedule
from classsync.core.updates import reassign_teacher, update_entity
from classsync.utils.logging import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ClassSync Timetable Engine",
    description=(
        "Conflict-aware weekly timetable generation for classes, teachers, courses "
        "and rooms, with conflict detection and quality scoring."
    ),
    version="1.0.0",
)


def _input_error(exc: ScheduleInputError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail=[issue.model_dump() for issue in exc.issues],
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/generate", response_model=GeneratedSchedule)
def generate(payload: SchedulingInput) -> GeneratedSchedule:
    try:
        schedule = generate_schedule(payload)
    except ScheduleInputError as exc:
        logger.warning("Rejected scheduling input: %s", exc)
        raise _input_error(exc) from exc

    logger.info(
        "Generated schedule sessions=%d conflicts=%d score=%d utilization=%.2f%%",
        len(schedule.sessions),
        len(schedule.conflicts),
        schedule.score,
        schedule.metadata.utilization_rate,
    )
    if schedule.unplaced:
        logger.warning("%d session(s) could not be placed", len(schedule.unplaced))
    return schedule


@app.post("/generate/csv", response_model=GeneratedSchedule)
async def generate_from_csv(
    classes_file: UploadFile = File(...),
    courses_file: UploadFile = File(...),
    teachers_file: UploadFile = File(...),
    rooms_file: UploadFile = File(...),
    course_assignments_file: UploadFile = File(...),
    class_courses_file: UploadFile = File(...),
    constraints_json: str | None = Form(default=None),
) -> GeneratedSchedule:
    try:
        payload = load_scheduling_input_from_csv_bytes(
            classes_csv=await classes_file.read(),
            courses_csv=await courses_file.read(),
            teachers_csv=await teachers_file.read(),
            rooms_csv=await rooms_file.read(),
            course_assignments_csv=await course_assignments_file.read(),
            class_courses_csv=await class_courses_file.read(),
            constraints_json=constraints_json,
        )
    except CsvIngestionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors()) from exc

    return generate(payload)


@app.post("/detect", response_model=DetectResponse)
def detect(payload: DetectRequest) -> DetectResponse:
    try:
        ensure_valid_input(payload.data)
    except ScheduleInputError as exc:
        raise _input_error(exc) from exc

    conflicts = detect_conflicts(payload.data, payload.sessions)
    report = score_schedule(payload.data, payload.sessions, conflicts)
    logger.info(
        "Conflict detection complete sessions=%d conflicts=%d score=%d",
        len(payload.sessions),
        len(conflicts),
        report.score,
    )
    return DetectResponse(conflicts=conflicts, report=report)


@app.post("/optimize", response_model=GeneratedSchedule)
def optimize(payload: OptimizeRequest) -> GeneratedSchedule:
    try:
        return optimize_schedule(payload.data, payload.schedule, payload.request)
    except ScheduleInputError as exc:
        raise _input_error(exc) from exc


@app.post("/compare", response_model=CompareResponse)
def compare(payload: CompareRequest) -> CompareResponse:
    try:
        response = compare_scenarios(payload.data, payload.scenarios)
    except ScheduleInputError as exc:
        raise _input_error(exc) from exc

    logger.info(
        "Scenario comparison complete scenarios=%d best=%s",
        len(response.scenarios),
        response.best_scenario,
    )
    return response


@app.post("/sessions/filter", response_model=list[ScheduleSession])
def sessions_in_scope(payload: ScopeFilterRequest) -> list[ScheduleSession]:
    return filter_sessions(payload.schedule, payload.scope_filter)


@app.post("/entities/{kind}/update")
def update_entity_fields(kind: EntityKind, payload: EntityUpdateRequest) -> dict[str, Any]:
    try:
        updated = update_entity(kind, payload.entity, payload.changes)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc

    logger.info("Updated %s id=%s fields=%s", kind, updated.id, sorted(payload.changes))
    return updated.model_dump()


@app.post("/assignments/reassign", response_model=list[CourseAssignment])
def reassign(payload: ReassignRequest) -> list[CourseAssignment]:
    assignments = reassign_teacher(
        payload.assignments,
        payload.teacher_id,
        payload.course_id,
        payload.assignment_type,
    )
    logger.info(
        "Reassigned course=%d %s to teacher=%d",
        payload.course_id,
        payload.assignment_type,
        payload.teacher_id,
    )
    return assignments
