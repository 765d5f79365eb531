from conftest import API, PASSWORD, get_user, run


def test_signup_creates_inactive_plan(client, db):
    response = client.post(f"{API}/auth/signup", json={
        "username": "ana",
        "email": "Ana@Example.com",
        "password": PASSWORD,
        "plan": "coach",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    user = body["user"]
    assert user["email"] == "ana@example.com"
    assert "password" not in user
    assert user["plan_info"]["plan_type"] == "coach"
    assert user["plan_info"]["status"] == "inactive"
    assert user["is_coach"] is True


def test_signup_rejects_weak_password(client):
    response = client.post(f"{API}/auth/signup", json={
        "username": "bob",
        "email": "bob@example.com",
        "password": "short",
        "plan": "free",
    })
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_signup_rejects_unknown_plan(client):
    response = client.post(f"{API}/auth/signup", json={
        "username": "bob",
        "email": "bob@example.com",
        "password": PASSWORD,
        "plan": "gold",
    })
    assert response.status_code == 422


def test_signup_duplicate_email(client, make_user):
    make_user("carla")
    response = client.post(f"{API}/auth/signup", json={
        "username": "carla2",
        "email": "carla@example.com",
        "password": PASSWORD,
        "plan": "free",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "USER_EXISTS"


def test_login_unknown_email(client):
    response = client.post(f"{API}/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert response.status_code == 404


def test_login_wrong_password_counts_attempts(client, db, make_user):
    user = make_user("dani")
    for _ in range(2):
        response = client.post(f"{API}/auth/login", json={"email": user["email"], "password": "Wrong1234"})
        assert response.status_code == 401

    assert get_user(db, user["id"])["stats"]["failed_login_attempts"] == 2

    response = client.post(f"{API}/auth/login", json={"email": user["email"], "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["user_id"] == user["id"]
    assert get_user(db, user["id"])["stats"]["failed_login_attempts"] == 0


def test_dashboard_records_visit(client, db, make_user):
    user = make_user("edu")
    headers = {**user["headers"], "User-Agent": "pytest-agent"}

    client.get(f"{API}/auth/me", headers=headers)
    response = client.get(f"{API}/auth/me", headers=headers)
    assert response.status_code == 200

    stats = response.json()["user"]["stats"]
    assert stats["login_count"] == 2
    assert stats["device_history"] == ["pytest-agent"]
    assert len(stats["ip_history"]) == 1
    assert stats["last_login"] is not None


def test_dashboard_for_deleted_user(client, db, make_user):
    user = make_user("fabi")
    db_user = get_user(db, user["id"])
    run(db["users"].delete_one({"_id": db_user["_id"]}))

    response = client.get(f"{API}/auth/me", headers=user["headers"])
    assert response.status_code == 404
