from outreach.app import db
from outreach.models import Program, ProgramParticipant, User


def login_user(client, user_id):
    with client.session_transaction() as sess:
        sess.clear()
        sess["user_id"] = user_id


def seed(app, *, status="ongoing", capacity=2):
    owner = User(email="owner@example.com")
    other = User(email="other@example.com")
    db.session.add_all([owner, other])
    db.session.flush()
    program = Program(
        title="Psychosocial support",
        program_code="PSS",
        total_sessions=4,
        minimum_sessions_for_completion=3,
        conducted_by=owner.id,
        status=status,
        expected_participants=capacity,
    )
    db.session.add(program)
    db.session.commit()
    return {"owner_id": owner.id, "other_id": other.id, "program_id": program.id}


def enrolment(program_id, **overrides):
    body = {
        "programId": program_id,
        "name": "Omar",
        "age": 14,
        "gender": "male",
        "idNumber": "ID-1",
        "phoneNumber": "555-0100",
        "specialStatus": {"isSeparated": True},
    }
    body.update(overrides)
    return body


def test_enroll_participant(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])

    resp = client.post("/api/program-participants", json=enrolment(ids["program_id"]))
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["status"] == "enrolled"
    assert data["sessionsAttended"] == 0
    assert data["overallMaterialsReceived"] == []
    assert data["specialStatus"] == {
        "isDisabled": False,
        "isWounded": False,
        "isSeparated": True,
        "isUnaccompanied": False,
    }
    assert db.session.get(Program, ids["program_id"]).enrolled_participants == 1


def test_enroll_validation(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])

    resp = client.post(
        "/api/program-participants", json=enrolment(ids["program_id"], phoneNumber="")
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/program-participants", json=enrolment(ids["program_id"], gender="x")
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Gender must be male, female, or other"

    for flags in (True, "disabled", ["isDisabled"]):
        resp = client.post(
            "/api/program-participants",
            json=enrolment(ids["program_id"], specialStatus=flags),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "specialStatus must be an object"
    assert ProgramParticipant.query.count() == 0


def test_enroll_accepts_age_zero(app, client):
    ids = seed(app)
    login_user(client, ids["owner_id"])

    resp = client.post(
        "/api/program-participants", json=enrolment(ids["program_id"], age=0)
    )
    assert resp.status_code == 201
    assert resp.get_json()["age"] == 0


def test_enroll_duplicate_and_capacity(app, client):
    ids = seed(app, capacity=2)
    login_user(client, ids["owner_id"])

    assert client.post("/api/program-participants", json=enrolment(ids["program_id"])).status_code == 201
    resp = client.post("/api/program-participants", json=enrolment(ids["program_id"]))
    assert resp.status_code == 400
    assert "already enrolled" in resp.get_json()["error"]

    assert client.post(
        "/api/program-participants", json=enrolment(ids["program_id"], idNumber="ID-2")
    ).status_code == 201
    resp = client.post(
        "/api/program-participants", json=enrolment(ids["program_id"], idNumber="ID-3")
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Program has reached its capacity limit"


def test_enroll_into_closed_program(app, client):
    ids = seed(app, status="completed")
    login_user(client, ids["owner_id"])

    resp = client.post("/api/program-participants", json=enrolment(ids["program_id"]))
    assert resp.status_code == 400


def test_enroll_and_list_require_ownership(app, client):
    ids = seed(app)
    login_user(client, ids["other_id"])

    resp = client.post("/api/program-participants", json=enrolment(ids["program_id"]))
    assert resp.status_code == 403
    resp = client.get(f"/api/program-participants?programId={ids['program_id']}")
    assert resp.status_code == 403


def test_list_participants_decorated_with_program(app, client):
    ids = seed(app)
    db.session.add(
        ProgramParticipant(
            program_id=ids["program_id"], name="Lina", age=30, gender="female"
        )
    )
    db.session.commit()
    login_user(client, ids["owner_id"])

    (row,) = client.get("/api/program-participants").get_json()
    assert row["name"] == "Lina"
    assert row["programCode"] == "PSS"
    assert row["programMinimumSessions"] == 3

    login_user(client, ids["other_id"])
    assert client.get("/api/program-participants").get_json() == []
