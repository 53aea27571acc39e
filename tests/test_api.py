from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_user


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_academic_year_switch_over_http(client: AsyncClient) -> None:
    first = await client.post(
        "/api/v1/academic-years",
        json={"name": "2024-2025", "start_date": "2024-09-01", "end_date": "2025-06-30", "is_current": True},
    )
    assert first.status_code == 201
    second = await client.post(
        "/api/v1/academic-years",
        json={"name": "2025-2026", "start_date": "2025-09-01", "end_date": "2026-06-30", "create_semesters": True},
    )
    assert second.status_code == 201
    assert len(second.json()["semesters"]) == 2

    switched = await client.post(f"/api/v1/academic-years/{second.json()['id']}/set-current")
    assert switched.status_code == 200

    current = await client.get("/api/v1/academic-years/current")
    assert current.json()["name"] == "2025-2026"
    listed = await client.get("/api/v1/academic-years", params={"is_current": "true"})
    assert [y["name"] for y in listed.json()] == ["2025-2026"]

    refused = await client.delete(f"/api/v1/academic-years/{second.json()['id']}")
    assert refused.status_code == 409
    deleted = await client.delete(f"/api/v1/academic-years/{first.json()['id']}")
    assert deleted.status_code == 204


@pytest.mark.asyncio
async def test_unknown_year_is_404(client: AsyncClient) -> None:
    response = await client.get(f"/api/v1/academic-years/{uuid4()}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Academic year not found"


@pytest.mark.asyncio
async def test_enrollment_and_grading_flow(client: AsyncClient, db_session: AsyncSession) -> None:
    year = (
        await client.post(
            "/api/v1/academic-years",
            json={"name": "2025-2026", "start_date": "2025-09-01", "end_date": "2026-06-30", "is_current": True},
        )
    ).json()
    level = (await client.post("/api/v1/levels", json={"name": "Grade 7"})).json()
    subject = (
        await client.post("/api/v1/subjects", json={"name": "Mathematics", "code": "math7", "level_id": level["id"]})
    ).json()
    assert subject["code"] == "MATH7"
    school_class = (
        await client.post(
            "/api/v1/classes",
            json={"academic_year_id": year["id"], "level_id": level["id"], "name": "7A", "max_students": 1},
        )
    ).json()

    teacher = await make_user(db_session, role="teacher")
    student = await make_user(db_session)
    late = await make_user(db_session)

    enrolled = await client.post("/api/v1/enrollments", json={"student_id": str(student.id), "class_id": school_class["id"]})
    assert enrolled.status_code == 201
    full = await client.post("/api/v1/enrollments", json={"student_id": str(late.id), "class_id": school_class["id"]})
    assert full.status_code == 409
    not_a_student = await client.post(
        "/api/v1/enrollments", json={"student_id": str(teacher.id), "class_id": school_class["id"]}
    )
    assert not_a_student.status_code == 403

    active = await client.get("/api/v1/enrollments/active", params={"student_id": str(student.id)})
    assert active.json()["id"] == enrolled.json()["id"]

    cs = await client.post(
        "/api/v1/class-subjects",
        json={
            "class_id": school_class["id"],
            "subject_id": subject["id"],
            "teacher_id": str(teacher.id),
            "coefficient": 3,
            "valid_from": "2025-09-01",
        },
    )
    assert cs.status_code == 201
    bad_coef = await client.patch(f"/api/v1/class-subjects/{cs.json()['id']}/coefficient", json={"coefficient": 0})
    assert bad_coef.status_code == 400

    assessment = await client.post(
        "/api/v1/assessments",
        json={
            "class_subject_id": cs.json()["id"],
            "teacher_id": str(teacher.id),
            "title": "Algebra test",
            "type": "exam",
            "is_published": True,
            "questions": [{"content": "Solve x", "points": 4}, {"content": "Solve y", "points": 6}],
        },
    )
    assert assessment.status_code == 201
    assert assessment.json()["total_points"] == 10

    started = await client.post(
        f"/api/v1/assessments/{assessment.json()['id']}/assignments", json={"student_id": str(student.id)}
    )
    assert started.status_code == 201
    assert started.json()["status"] == "in_progress"
    assignment_id = started.json()["id"]
    early = await client.post(f"/api/v1/assessments/assignments/{assignment_id}/grade", json={"score": 5})
    assert early.status_code == 409

    await client.post(f"/api/v1/assessments/assignments/{assignment_id}/submit")
    graded = await client.post(f"/api/v1/assessments/assignments/{assignment_id}/grade", json={"score": 8})
    assert graded.json()["status"] == "graded"

    breakdown = await client.get(
        "/api/v1/grades/breakdown", params={"student_id": str(student.id), "class_id": school_class["id"]}
    )
    assert breakdown.status_code == 200
    body = breakdown.json()
    assert body["subjects"][0]["average"] == 16.0
    assert body["annual_average"] == 16.0

    results = await client.get(f"/api/v1/grades/classes/{school_class['id']}/results")
    assert results.json()["overview"]["total_students"] == 1

    overview = await client.get(f"/api/v1/grades/students/{student.id}/overview")
    assert overview.json()["overall_average"] == 16.0
    summary = await client.get(f"/api/v1/grades/students/{student.id}/assessments")
    assert summary.json()[0]["normalized_grade"] == 16.0


@pytest.mark.asyncio
async def test_transfer_over_http(client: AsyncClient, db_session: AsyncSession) -> None:
    year = (
        await client.post(
            "/api/v1/academic-years",
            json={"name": "2025-2026", "start_date": "2025-09-01", "end_date": "2026-06-30"},
        )
    ).json()
    level = (await client.post("/api/v1/levels", json={"name": "Grade 8"})).json()
    a = (await client.post("/api/v1/classes", json={"academic_year_id": year["id"], "level_id": level["id"], "name": "8A"})).json()
    b = (await client.post("/api/v1/classes", json={"academic_year_id": year["id"], "level_id": level["id"], "name": "8B"})).json()
    student = await make_user(db_session)

    enrolled = (await client.post("/api/v1/enrollments", json={"student_id": str(student.id), "class_id": a["id"]})).json()
    moved = await client.post(f"/api/v1/enrollments/{enrolled['id']}/transfer", json={"new_class_id": b["id"]})
    assert moved.status_code == 201
    assert moved.json()["class_name"] == "8B"

    old = await client.get(f"/api/v1/enrollments/{enrolled['id']}")
    assert old.json()["status"] == "withdrawn"
    listed = await client.get("/api/v1/enrollments", params={"class_id": b["id"], "status": "active"})
    assert len(listed.json()) == 1
