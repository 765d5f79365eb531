from conftest import API, get_user, run


def _publish(client, user, specialty="personal-trainer", name="Coach"):
    response = client.post(
        f"{API}/professionals",
        data={"name": name, "bio": "Treinos personalizados", "specialty": specialty, "city": "Recife"},
        headers=user["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["professional"]


def _request(client, student, professional_id, force=False):
    return client.post(
        f"{API}/professionals/{professional_id}/requests",
        json={"message": "Quero treinar", "force": force},
        headers=student["headers"],
    )


def _accept(client, owner, professional_id, student_id):
    return client.post(
        f"{API}/professionals/{professional_id}/students/{student_id}/accept",
        headers=owner["headers"],
    )


def test_publish_marks_user_as_coach(client, db, make_user):
    owner = make_user()
    professional = _publish(client, owner)
    assert professional["specialty"] == "personal-trainer"
    assert get_user(db, owner["id"])["is_coach"] is True

    again = client.post(
        f"{API}/professionals",
        data={"name": "Again", "bio": "x", "specialty": "nutritionist"},
        headers=owner["headers"],
    )
    assert again.status_code == 409
    assert again.json()["code"] == "PROFESSIONAL_EXISTS"


def test_directory_listing_and_lookup(client, make_user):
    first = make_user()
    second = make_user()
    _publish(client, first, name="Ana Personal")
    published = _publish(client, second, specialty="nutritionist", name="Bruno Nutri")

    listing = client.get(f"{API}/professionals", params={"q": "nutri"}).json()
    assert listing["total"] == 1
    assert listing["items"][0]["name"] == "Bruno Nutri"

    by_city = client.get(f"{API}/professionals", params={"city": "recife"}).json()
    assert by_city["total"] == 2
    assert by_city["per_page"] == 20

    by_user = client.get(f"{API}/professionals", params={"user_id": second["id"]}).json()
    assert by_user["professional"]["professional_id"] == published["professional_id"]

    assert client.get(f"{API}/professionals/{published['professional_id']}").status_code == 200
    assert client.get(f"{API}/professionals/missing").status_code == 404


def test_update_is_owner_only(client, make_user):
    owner = make_user()
    other = make_user()
    professional = _publish(client, owner)

    response = client.patch(
        f"{API}/professionals/{professional['professional_id']}",
        data={"bio": "Nova bio"},
        headers=other["headers"],
    )
    assert response.status_code == 403

    response = client.patch(
        f"{API}/professionals/{professional['professional_id']}",
        data={"bio": "Nova bio"},
        headers=owner["headers"],
    )
    assert response.status_code == 200
    assert response.json()["professional"]["bio"] == "Nova bio"


def test_specialty_change_blocked_with_students(client, make_user):
    owner = make_user()
    student = make_user()
    professional = _publish(client, owner)
    _request(client, student, professional["professional_id"])

    response = client.patch(
        f"{API}/professionals/{professional['professional_id']}",
        data={"specialty": "nutritionist"},
        headers=owner["headers"],
    )
    assert response.status_code == 400
    assert response.json()["code"] == "HAS_STUDENTS"


def test_cannot_request_own_profile(client, make_user):
    owner = make_user()
    professional = _publish(client, owner)
    response = _request(client, owner, professional["professional_id"])
    assert response.status_code == 400
    assert response.json()["code"] == "SELF_REQUEST"


def test_repeated_request_is_refreshed(client, make_user):
    owner = make_user()
    student = make_user()
    professional = _publish(client, owner)

    assert _request(client, student, professional["professional_id"]).status_code == 201
    assert _request(client, student, professional["professional_id"]).status_code == 200


def test_coach_conflict_force_and_transfer(client, db, make_user):
    coach_a = make_user("coach_a")
    coach_b = make_user("coach_b")
    student = make_user("student")
    prof_a = _publish(client, coach_a, name="A")["professional_id"]
    prof_b = _publish(client, coach_b, name="B")["professional_id"]

    assert _request(client, student, prof_a).status_code == 201
    accepted = _accept(client, coach_a, prof_a, student["id"])
    assert accepted.status_code == 200
    assert accepted.json()["previous_professional_removed"] is False
    assert get_user(db, student["id"])["coach_ids"]["personal-trainer"] == prof_a

    again = _request(client, student, prof_a)
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_STUDENT"

    conflict = _request(client, student, prof_b)
    assert conflict.status_code == 409
    body = conflict.json()
    assert body["code"] == "COACH_CONFLICT"
    assert body["details"]["can_force"] is True
    assert body["details"]["current_professional"]["professional_id"] == prof_a

    forced = _request(client, student, prof_b, force=True)
    assert forced.status_code == 201
    assert "warning" in forced.json()

    stored_b = run(db["professionals"].find_one({"professional_id": prof_b}))
    assert stored_b["students"][0]["force_request"] is True
    assert stored_b["students"][0]["previous_professional"] == prof_a

    transfer = _accept(client, coach_b, prof_b, student["id"])
    assert transfer.status_code == 200
    assert transfer.json()["previous_professional"] == prof_a
    assert transfer.json()["previous_professional_removed"] is True

    stored_a = run(db["professionals"].find_one({"professional_id": prof_a}))
    assert stored_a["students"] == []
    assert get_user(db, student["id"])["coach_ids"]["personal-trainer"] == prof_b


def test_accept_is_owner_only(client, make_user):
    owner = make_user()
    student = make_user()
    professional = _publish(client, owner)["professional_id"]
    _request(client, student, professional)

    response = _accept(client, student, professional, student["id"])
    assert response.status_code == 403


def test_professional_acts_for_accepted_student(client, db, make_user):
    owner = make_user()
    student = make_user()
    professional = _publish(client, owner)["professional_id"]
    _request(client, student, professional)
    _accept(client, owner, professional, student["id"])

    response = client.put(
        f"{API}/workouts",
        json={"workouts": [{"name": "Plano do coach"}], "student_id": student["id"]},
        headers=owner["headers"],
    )
    assert response.status_code == 200
    assert get_user(db, student["id"])["workouts"][0]["name"] == "Plano do coach"

    view = client.get(f"{API}/profile/students/{student['id']}", headers=owner["headers"])
    assert view.status_code == 200
    assert "password" not in view.json()["student"]
    assert "stats" not in view.json()["student"]


def test_student_leaves(client, db, make_user):
    owner = make_user()
    student = make_user()
    stranger = make_user()
    professional = _publish(client, owner)["professional_id"]
    _request(client, student, professional)
    _accept(client, owner, professional, student["id"])

    url = f"{API}/professionals/{professional}/students/{student['id']}"
    assert client.delete(url, headers=stranger["headers"]).status_code == 403

    response = client.delete(url, headers=student["headers"])
    assert response.status_code == 200
    assert response.json() == {"removed": True, "coach_slot_cleared": True}
    assert get_user(db, student["id"])["coach_ids"]["personal-trainer"] is None

    assert client.delete(url, headers=owner["headers"]).status_code == 404
