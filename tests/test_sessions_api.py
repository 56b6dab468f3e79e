from datetime import date

from outreach.app import db
from outreach.models import Program, Session, SessionAttendance, User


def login_user(client, user_id):
    with client.session_transaction() as sess:
        sess.clear()
        sess["user_id"] = user_id


def seed(app, *, total_sessions=3):
    admin = User(email="admin@example.com", role="admin")
    owner = User(email="owner@example.com")
    other = User(email="other@example.com")
    db.session.add_all([admin, owner, other])
    db.session.flush()
    program = Program(
        title="Life skills",
        program_code="LS-01",
        start_date=date(2026, 1, 1),
        end_date=date(2026, 3, 31),
        total_sessions=total_sessions,
        minimum_sessions_for_completion=2,
        conducted_by=owner.id,
        expected_participants=12,
    )
    db.session.add(program)
    db.session.commit()
    return {
        "admin_id": admin.id,
        "owner_id": owner.id,
        "other_id": other.id,
        "program_id": program.id,
    }


def payload(program_id, **overrides):
    body = {
        "programId": program_id,
        "title": "Kickoff",
        "date": "2026-01-15",
        "startTime": "09:00",
        "endTime": "11:00",
    }
    body.update(overrides)
    return body


def test_create_session_assigns_number_and_code(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])

    resp = client.post("/api/sessions", json=payload(ids["program_id"]))
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["sessionNumber"] == 1
    assert data["sessionCode"] == "LS-01-S1"
    assert data["status"] == "planned"
    assert data["expectedParticipants"] == 12
    assert data["startTime"] == "09:00"

    resp = client.post("/api/sessions", json=payload(ids["program_id"], title="Next"))
    assert resp.get_json()["sessionNumber"] == 2


def test_create_session_requires_fields(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])

    resp = client.post("/api/sessions", json={"programId": ids["program_id"]})
    assert resp.status_code == 400
    assert "required" in resp.get_json()["error"]


def test_create_session_rejects_bad_times_and_dates(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])

    resp = client.post(
        "/api/sessions", json=payload(ids["program_id"], endTime="08:00")
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "End time must be after start time"

    resp = client.post(
        "/api/sessions", json=payload(ids["program_id"], date="2026-05-01")
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Session date must be within program duration"


def test_create_session_rejects_duplicate_and_overflow_numbers(app, client):
    ids = seed(app, total_sessions=2)
    login_user(client, ids["owner_id"])

    resp = client.post("/api/sessions", json=payload(ids["program_id"], sessionNumber=0))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "sessionNumber must be 1 or greater"

    assert client.post("/api/sessions", json=payload(ids["program_id"], sessionNumber=2)).status_code == 201

    resp = client.post("/api/sessions", json=payload(ids["program_id"], sessionNumber=2))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Session number 2 already exists for this program"

    resp = client.post("/api/sessions", json=payload(ids["program_id"]))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == (
        "Cannot create session 3. Program only has 2 total sessions."
    )


def test_create_session_access(app, client):
    ids = seed(app)
    login_user(client, ids["other_id"])
    resp = client.post("/api/sessions", json=payload(ids["program_id"]))
    assert resp.status_code == 403

    resp = client.post("/api/sessions", json=payload(9999))
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Program not found"

    login_user(client, ids["admin_id"])
    resp = client.post("/api/sessions", json=payload(ids["program_id"]))
    assert resp.status_code == 201
    assert resp.get_json()["conductedBy"] == ids["admin_id"]


def test_list_sessions_filters_by_access(app, client):
    ids = seed(app)
    for number in (2, 1):
        db.session.add(
            Session(
                program_id=ids["program_id"],
                session_number=number,
                title=f"S{number}",
                date=date(2026, 1, number),
            )
        )
    db.session.commit()

    login_user(client, ids["owner_id"])
    resp = client.get(f"/api/sessions?programId={ids['program_id']}")
    assert resp.status_code == 200
    rows = resp.get_json()
    assert [r["sessionNumber"] for r in rows] == [1, 2]
    assert rows[0]["programTitle"] == "Life skills"

    login_user(client, ids["other_id"])
    assert client.get("/api/sessions").get_json() == []
    resp = client.get(f"/api/sessions?programId={ids['program_id']}")
    assert resp.status_code == 403

    login_user(client, ids["admin_id"])
    assert len(client.get("/api/sessions").get_json()) == 2


def test_update_session_status_and_schedule(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])
    session_id = client.post("/api/sessions", json=payload(ids["program_id"])).get_json()["id"]

    resp = client.put(
        f"/api/sessions/{session_id}",
        json={"status": "completed", "startTime": "10:00", "sessionNumber": 9},
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["status"] == "completed"
    assert data["startTime"] == "10:00"
    assert data["sessionNumber"] == 1

    resp = client.get(f"/api/sessions/{session_id}")
    assert resp.status_code == 200
    assert resp.get_json()["programTitle"] == "Life skills"


def test_update_session_validation(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])
    session_id = client.post("/api/sessions", json=payload(ids["program_id"])).get_json()["id"]

    resp = client.put(f"/api/sessions/{session_id}", json={"status": "done"})
    assert resp.status_code == 400
    assert resp.get_json()["error"].startswith("Invalid session status")

    resp = client.put(f"/api/sessions/{session_id}", json={"endTime": "08:30"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "End time must be after start time"

    resp = client.put(f"/api/sessions/{session_id}", json={"date": "2027-01-01"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Session date must be within program duration"

    assert db.session.get(Session, session_id).status == "planned"


def test_session_detail_update_and_delete_access(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])
    session_id = client.post("/api/sessions", json=payload(ids["program_id"])).get_json()["id"]

    login_user(client, ids["other_id"])
    assert client.get(f"/api/sessions/{session_id}").status_code == 403
    assert client.put(f"/api/sessions/{session_id}", json={"status": "completed"}).status_code == 403
    assert client.delete(f"/api/sessions/{session_id}").status_code == 403

    login_user(client, ids["admin_id"])
    assert client.get("/api/sessions/9999").status_code == 404
    assert client.put(f"/api/sessions/{session_id}", json={"status": "ongoing"}).status_code == 200


def test_delete_session_refuses_when_attendance_exists(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])
    first = client.post("/api/sessions", json=payload(ids["program_id"])).get_json()["id"]
    second = client.post("/api/sessions", json=payload(ids["program_id"])).get_json()["id"]
    db.session.add(
        SessionAttendance(
            session_id=first, program_participant_id=1, attendance_status="attended"
        )
    )
    db.session.commit()

    resp = client.delete(f"/api/sessions/{first}")
    assert resp.status_code == 400
    assert "attendance records" in resp.get_json()["error"]

    assert client.delete(f"/api/sessions/{second}").status_code == 200
    assert db.session.get(Session, second) is None
