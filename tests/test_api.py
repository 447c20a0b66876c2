from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient

from classsync.api.main import app


client = TestClient(app)


def load_sample_payload() -> dict:
    sample_path = Path(__file__).resolve().parents[1] / "data" / "sample_input.json"
    with sample_path.open("r", encoding="utf-8") as file:
        return json.load(file)


def load_csv_request_files() -> dict[str, tuple[str, bytes, str]]:
    csv_dir = Path(__file__).resolve().parents[1] / "data" / "csv"
    filenames = {
        "classes_file": "classes.csv",
        "courses_file": "courses.csv",
        "teachers_file": "teachers.csv",
        "rooms_file": "rooms.csv",
        "course_assignments_file": "course_assignments.csv",
        "class_courses_file": "class_courses.csv",
    }
    files: dict[str, tuple[str, bytes, str]] = {}
    for field, filename in filenames.items():
        file_path = csv_dir / filename
        files[field] = (filename, file_path.read_bytes(), "text/csv")
    return files


def test_health_endpoint() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_generate_endpoint_returns_schedule() -> None:
    payload = load_sample_payload()
    response = client.post("/generate", json=payload)

    assert response.status_code == 200
    body = response.json()

    assert 0 <= body["score"] <= 100
    assert body["metadata"]["sessions_required"] > 0
    assert body["metadata"]["sessions_placed"] + len(body["unplaced"]) == (
        body["metadata"]["sessions_required"]
    )
    assert len(body["sessions"]) > 0
    assert all(
        conflict["severity"] in {"warning", "critical"} for conflict in body["conflicts"]
    )


def test_generate_endpoint_rejects_unknown_link() -> None:
    payload = load_sample_payload()
    payload["class_courses"].append({"class_id": 42, "course_id": 1})

    response = client.post("/generate", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"][0]["code"] == "UNKNOWN_CLASS"


def test_generate_endpoint_rejects_inverted_preferred_window() -> None:
    payload = load_sample_payload()
    payload["constraints"]["preferred_start_time"] = 14

    response = client.post("/generate", json=payload)

    assert response.status_code == 422


def test_detect_endpoint_scores_generated_sessions() -> None:
    payload = load_sample_payload()
    generated = client.post("/generate", json=payload)
    assert generated.status_code == 200

    generated_body = generated.json()
    response = client.post(
        "/detect",
        json={"data": payload, "sessions": generated_body["sessions"]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["report"]["critical_conflicts"] == sum(
        1 for conflict in body["conflicts"] if conflict["severity"] == "critical"
    )
    assert "utilization_rate" in body["report"]


def test_detect_endpoint_reports_double_booking() -> None:
    payload = load_sample_payload()
    session: dict[str, Any] = {
        "class_id": 1,
        "course_id": 1,
        "teacher_id": 1,
        "room_id": 1,
        "type": "lecture",
        "time_slot": {"day": "Mon", "start_time": 9, "duration": 2},
    }
    sessions = [
        {**session, "id": "first"},
        {**session, "id": "second", "class_id": 2},
    ]

    response = client.post("/detect", json={"data": payload, "sessions": sessions})

    assert response.status_code == 200
    codes = [conflict["code"] for conflict in response.json()["conflicts"]]
    assert "DOUBLE_BOOKING" in codes


def test_optimize_endpoint_refines_weights() -> None:
    payload = load_sample_payload()
    generated = client.post("/generate", json=payload)
    assert generated.status_code == 200

    response = client.post(
        "/optimize",
        json={
            "data": payload,
            "schedule": generated.json(),
            "request": {"mode": "refine", "weight_adjustments": {"back_to_back": 5}},
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["metadata"]["weights"]["back_to_back"] == 45
    assert body["metadata"]["optimization_history"][-1]["mode"] == "refine"


def test_optimize_endpoint_rejects_unknown_weight() -> None:
    payload = load_sample_payload()
    generated = client.post("/generate", json=payload)

    response = client.post(
        "/optimize",
        json={
            "data": payload,
            "schedule": generated.json(),
            "request": {"mode": "refine", "weight_adjustments": {"lunch_break": 5}},
        },
    )

    assert response.status_code == 400
    assert response.json()["detail"][0]["code"] == "UNKNOWN_WEIGHT"


def test_compare_endpoint_returns_best_scenario() -> None:
    payload = load_sample_payload()
    compare_payload = {
        "data": payload,
        "scenarios": [
            {"name": "Balanced", "constraints": payload["constraints"]},
            {
                "name": "Compact days",
                "constraints": {
                    **payload["constraints"],
                    "max_teacher_hours_per_day": 2,
                    "distribute_evenly_across_week": False,
                },
            },
        ],
    }

    response = client.post("/compare", json=compare_payload)

    assert response.status_code == 200
    body = response.json()
    assert len(body["scenarios"]) == 2
    assert body["best_scenario"] in {"Balanced", "Compact days"}


def test_generate_csv_endpoint_returns_schedule() -> None:
    payload = load_sample_payload()
    constraints_json = json.dumps(payload["constraints"])
    response = client.post(
        "/generate/csv",
        data={"constraints_json": constraints_json},
        files=load_csv_request_files(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["metadata"]["constraints"]["group_same_course_classes"] is True
    assert len(body["sessions"]) > 0


def test_generate_csv_endpoint_rejects_bad_constraints() -> None:
    response = client.post(
        "/generate/csv",
        data={"constraints_json": "{not json"},
        files=load_csv_request_files(),
    )

    assert response.status_code == 400


def test_filter_endpoint_returns_teacher_view() -> None:
    payload = load_sample_payload()
    generated = client.post("/generate", json=payload)
    assert generated.status_code == 200

    response = client.post(
        "/sessions/filter",
        json={
            "schedule": generated.json(),
            "scope_filter": {"scope": "teacher", "entity_id": 2},
        },
    )

    assert response.status_code == 200
    sessions = response.json()
    assert sessions
    assert all(session["teacher_id"] == 2 for session in sessions)


def test_generate_csv_endpoint_rejects_non_utf8_file() -> None:
    files = load_csv_request_files()
    files["teachers_file"] = ("teachers.csv", b"id,name\n1,\xff\xfe\n", "text/csv")

    response = client.post("/generate/csv", files=files)

    assert response.status_code == 400
    assert "not valid UTF-8" in response.json()["detail"]


def test_entity_update_endpoint_merges_changes() -> None:
    payload = load_sample_payload()

    response = client.post(
        "/entities/room/update",
        json={"entity": payload["rooms"][1], "changes": {"capacity": 80}},
    )

    assert response.status_code == 200
    assert response.json() == {"id": 2, "name": "Room 101", "type": "lecture", "capacity": 80}


def test_entity_update_endpoint_rejects_invalid_changes() -> None:
    payload = load_sample_payload()

    response = client.post(
        "/entities/course/update",
        json={"entity": payload["courses"][0], "changes": {"lecture_hours": -1}},
    )

    assert response.status_code == 422


def test_entity_update_endpoint_rejects_unknown_kind() -> None:
    response = client.post("/entities/building/update", json={"entity": {}, "changes": {}})

    assert response.status_code == 422


def test_reassign_endpoint_replaces_holder() -> None:
    payload = load_sample_payload()

    response = client.post(
        "/assignments/reassign",
        json={
            "assignments": payload["course_assignments"],
            "teacher_id": 1,
            "course_id": 3,
            "assignment_type": "lecture",
        },
    )

    assert response.status_code == 200
    holders = [
        item["teacher_id"]
        for item in response.json()
        if item["course_id"] == 3 and item["assignment_type"] == "lecture"
    ]
    assert holders == [1]
    assert len(response.json()) == len(payload["course_assignments"])
