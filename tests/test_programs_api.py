from outreach.app import db
from outreach.models import Program, ProgramParticipant, User


def login_user(client, user_id):
    with client.session_transaction() as sess:
        sess.clear()
        sess["user_id"] = user_id


def seed(app):
    admin = User(email="admin@example.com", role="admin")
    owner = User(email="ana.lopez@example.com", name="Ana Lopez")
    other = User(email="other@example.com")
    db.session.add_all([admin, owner, other])
    db.session.commit()
    return {"admin_id": admin.id, "owner_id": owner.id, "other_id": other.id}


def program_body(**overrides):
    body = {
        "title": "Youth literacy",
        "startDate": "2026-03-01",
        "endDate": "2026-05-31",
        "totalSessions": 2,
        "minimumSessionsForCompletion": 1,
        "expectedParticipants": 5,
    }
    body.update(overrides)
    return body


def test_create_program_assigns_code_and_defaults(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])

    resp = client.post("/api/programs", json=program_body())
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["programCode"] == "AL-20260301-PROG-001"
    assert data["status"] == "planned"
    assert data["conductedBy"] == ids["owner_id"]
    assert data["enrolledParticipants"] == 0

    resp = client.post(
        "/api/programs",
        json=program_body(totalSessions=5, minimumSessionsForCompletion=None),
    )
    data = resp.get_json()
    assert data["programCode"] == "AL-20260301-PROG-002"
    assert data["minimumSessionsForCompletion"] == 4


def test_create_program_validation(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])

    resp = client.post("/api/programs", json={"title": "Only a title"})
    assert resp.status_code == 400
    assert "required" in resp.get_json()["error"]

    resp = client.post("/api/programs", json=program_body(endDate="2026-02-01"))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "End date must be after start date"

    resp = client.post(
        "/api/programs",
        json=program_body(totalSessions=2, minimumSessionsForCompletion=3),
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == (
        "Minimum sessions for completion cannot exceed total sessions"
    )

    resp = client.post("/api/programs", json=program_body(totalSessions="many"))
    assert resp.status_code == 400
    assert Program.query.count() == 0


def test_program_read_and_update_follow_ownership(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])
    program_id = client.post("/api/programs", json=program_body()).get_json()["id"]

    login_user(client, ids["other_id"])
    assert client.get(f"/api/programs/{program_id}").status_code == 403
    assert client.put(f"/api/programs/{program_id}", json={"status": "ongoing"}).status_code == 403
    assert client.get("/api/programs").get_json() == []

    login_user(client, ids["admin_id"])
    assert len(client.get("/api/programs").get_json()) == 1
    assert client.get("/api/programs/9999").status_code == 404

    login_user(client, ids["owner_id"])
    resp = client.put(
        f"/api/programs/{program_id}",
        json={"status": "ongoing", "programCode": "HIJACK", "conductedBy": ids["other_id"]},
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["status"] == "ongoing"
    assert data["programCode"] == "AL-20260301-PROG-001"
    assert data["conductedBy"] == ids["owner_id"]


def test_update_program_validates_against_stored_values(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])
    program_id = client.post("/api/programs", json=program_body()).get_json()["id"]

    resp = client.put(
        f"/api/programs/{program_id}", json={"minimumSessionsForCompletion": 3}
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == (
        "Minimum sessions for completion cannot exceed total sessions"
    )

    resp = client.put(f"/api/programs/{program_id}", json={"endDate": "2026-01-01"})
    assert resp.status_code == 400

    resp = client.put(f"/api/programs/{program_id}", json={"status": "paused"})
    assert resp.status_code == 400

    resp = client.put(
        f"/api/programs/{program_id}",
        json={"totalSessions": 4, "minimumSessionsForCompletion": 3},
    )
    assert resp.status_code == 200
    assert resp.get_json()["minimumSessionsForCompletion"] == 3


def test_delete_program_refuses_when_in_use(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])
    program_id = client.post("/api/programs", json=program_body()).get_json()["id"]
    db.session.add(
        ProgramParticipant(program_id=program_id, name="Lina", age=9, gender="female")
    )
    db.session.commit()

    resp = client.delete(f"/api/programs/{program_id}")
    assert resp.status_code == 400
    assert "Cannot delete program" in resp.get_json()["error"]

    empty_id = client.post("/api/programs", json=program_body()).get_json()["id"]
    resp = client.delete(f"/api/programs/{empty_id}")
    assert resp.status_code == 200
    assert db.session.get(Program, empty_id) is None


def test_program_written_through_api_reaches_report(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])

    program_id = client.post("/api/programs", json=program_body()).get_json()["id"]
    session_ids = []
    for day in ("2026-03-05", "2026-03-12"):
        resp = client.post(
            "/api/sessions",
            json={
                "programId": program_id,
                "title": f"Class {day}",
                "date": day,
                "startTime": "10:00",
                "endTime": "12:00",
            },
        )
        assert resp.status_code == 201
        session_ids.append(resp.get_json()["id"])

    participant_ids = []
    for id_number, name in (("A-1", "Rami"), ("A-2", "Dana")):
        resp = client.post(
            "/api/program-participants",
            json={
                "programId": program_id,
                "name": name,
                "age": 15,
                "gender": "male",
                "idNumber": id_number,
                "phoneNumber": "555-0101",
            },
        )
        assert resp.status_code == 201
        participant_ids.append(resp.get_json()["id"])

    resp = client.put(f"/api/sessions/{session_ids[0]}", json={"status": "completed"})
    assert resp.status_code == 200

    for participant_id, status in zip(participant_ids, ("attended", "absent")):
        resp = client.post(
            "/api/session-attendance",
            json={
                "sessionId": session_ids[0],
                "programParticipantId": participant_id,
                "attendanceStatus": status,
            },
        )
        assert resp.status_code == 201

    stored = db.session.get(ProgramParticipant, participant_ids[0])
    assert stored.attendance_rate == 100
    assert stored.status == "completed"

    (report,) = client.get(f"/api/reports/programs?programId={program_id}").get_json()
    stats = report["statistics"]
    assert stats["completedSessions"] == 1
    assert stats["plannedSessions"] == 1
    assert stats["overallAttendanceRate"] == 50
    assert stats["completionRate"] == 50
    rates = {p["id"]: p["attendanceRate"] for p in report["participants"]}
    assert rates == {participant_ids[0]: 100, participant_ids[1]: 0}
