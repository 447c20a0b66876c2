from __future__ import annotations

import logging
from datetime import datetime, timezone

from classsync.core.allocator import AllocationOutput, allocate
from classsync.core.conflicts import detect_conflicts
from classsync.core.integrity import ScheduleInputError, ensure_valid_input
from classsync.core.metrics import score_schedule, total_hours
from classsync.core.models import (
    CompareResponse,
    GeneratedSchedule,
    OptimizationRecord,
    OptimizationRequest,
    ScenarioConfig,
    ScenarioResult,
    ScheduleMetadata,
    ScheduleSession,
    SchedulingInput,
    SoftConstraintWeights,
    ValidationIssue,
)

logger = logging.getLogger(__name__)


def _build_schedule(
    data: SchedulingInput,
    allocation: AllocationOutput,
    notes: list[str],
) -> GeneratedSchedule:
    conflicts = detect_conflicts(data, allocation.sessions, allocation.failures)
    report = score_schedule(data, allocation.sessions, conflicts)

    metadata = ScheduleMetadata(
        generated_at=datetime.now(timezone.utc),
        utilization_rate=report.utilization_rate,
        total_hours=total_hours(allocation.sessions),
        sessions_required=len(allocation.required),
        sessions_placed=len(allocation.sessions),
        soft_violations=report.soft_violations,
        constraints=data.constraints.model_copy(),
        weights=data.weights.model_copy(),
        notes=notes + allocation.notes,
    )
    return GeneratedSchedule(
        sessions=allocation.sessions,
        conflicts=conflicts,
        unplaced=allocation.failures,
        score=report.score,
        metadata=metadata,
    )


def generate_schedule(
    data: SchedulingInput,
    pinned: list[ScheduleSession] | None = None,
) -> GeneratedSchedule:
    """Runs allocation, conflict detection and scoring over one input snapshot.

    Structural input errors raise ScheduleInputError before anything is
    placed. Everything else, including sessions that cannot be placed, ends
    up in the returned schedule's conflict list.
    """
    warnings = ensure_valid_input(data)
    allocation = allocate(data, pinned=pinned)
    schedule = _build_schedule(data, allocation, [issue.message for issue in warnings])

    logger.info(
        "Generated schedule sessions=%d unplaced=%d conflicts=%d score=%d runtime=%.3fs",
        len(schedule.sessions),
        len(schedule.unplaced),
        len(schedule.conflicts),
        schedule.score,
        allocation.runtime_seconds,
    )
    return schedule


def adjust_weights(
    weights: SoftConstraintWeights,
    adjustments: dict[str, int],
) -> SoftConstraintWeights:
    known = set(SoftConstraintWeights.model_fields)
    unknown = sorted(set(adjustments) - known)
    if unknown:
        raise ScheduleInputError(
            [
                ValidationIssue(
                    code="UNKNOWN_WEIGHT",
                    message=f"Unknown soft-constraint weight '{name}'.",
                    details={"weight": name},
                )
                for name in unknown
            ]
        )

    current = weights.model_dump()
    for name, delta in adjustments.items():
        current[name] = max(0, current[name] + delta)
    return SoftConstraintWeights.model_validate(current)


def _released_session_ids(
    previous: GeneratedSchedule,
    target_conflicts: list[str],
) -> set[str]:
    targets = set(target_conflicts)
    released: set[str] = set()
    for conflict in previous.conflicts:
        if targets and conflict.message not in targets:
            continue
        released.update(conflict.session_ids)
    return released


def optimize_schedule(
    data: SchedulingInput,
    previous: GeneratedSchedule,
    request: OptimizationRequest,
) -> GeneratedSchedule:
    """Applies a fix or refine pass on top of an earlier schedule.

    fix keeps every session not tied to a targeted conflict in place and
    re-allocates the rest. refine regenerates everything with adjusted
    weights. The previous schedule is returned unchanged when the new one
    scores lower.
    """
    released: set[str] = set()
    if request.mode == "fix":
        released = _released_session_ids(previous, request.target_conflicts)
        pinned = [session for session in previous.sessions if session.id not in released]
        candidate = generate_schedule(data, pinned=pinned)
    else:
        weights = adjust_weights(data.weights, request.weight_adjustments)
        candidate = generate_schedule(data.model_copy(update={"weights": weights}))

    if candidate.score < previous.score:
        logger.info(
            "Discarded %s pass: score %d is below previous %d",
            request.mode,
            candidate.score,
            previous.score,
        )
        return previous

    record = OptimizationRecord(
        mode=request.mode,
        applied_at=datetime.now(timezone.utc),
        score_before=previous.score,
        score_after=candidate.score,
        released_sessions=len(released),
        target_conflicts=list(request.target_conflicts),
        weight_adjustments=dict(request.weight_adjustments),
    )
    candidate.metadata.optimization_history = [
        *previous.metadata.optimization_history,
        record,
    ]
    logger.info(
        "Applied %s pass: score %d -> %d",
        request.mode,
        previous.score,
        candidate.score,
    )
    return candidate


def compare_scenarios(
    data: SchedulingInput,
    scenarios: list[ScenarioConfig],
) -> CompareResponse:
    results: list[ScenarioResult] = []
    for scenario in scenarios:
        scenario_input = data.model_copy(
            update={"constraints": scenario.constraints, "weights": scenario.weights}
        )
        results.append(
            ScenarioResult(name=scenario.name, schedule=generate_schedule(scenario_input))
        )

    best_scenario: str | None = None
    if results:
        ranked = sorted(
            results,
            key=lambda item: (
                sum(1 for conflict in item.schedule.conflicts if conflict.severity == "critical"),
                -item.schedule.score,
                -item.schedule.metadata.utilization_rate,
            ),
        )
        best_scenario = ranked[0].name

    return CompareResponse(scenarios=results, best_scenario=best_scenario)
