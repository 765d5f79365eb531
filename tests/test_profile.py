from conftest import API, get_user


def test_change_theme(client, make_user):
    user = make_user()
    response = client.patch(f"{API}/profile/theme", json={"theme": "light"}, headers=user["headers"])
    assert response.status_code == 200
    assert response.json() == {"theme": "light"}


def test_change_theme_to_current_is_rejected(client, make_user):
    user = make_user()
    response = client.patch(f"{API}/profile/theme", json={"theme": "dark"}, headers=user["headers"])
    assert response.status_code == 400
    assert response.json()["code"] == "UNCHANGED"


def test_change_theme_invalid(client, make_user):
    user = make_user()
    response = client.patch(f"{API}/profile/theme", json={"theme": "neon"}, headers=user["headers"])
    assert response.status_code == 422


def test_onboarding_maps_goal_and_records_tokens(client, db, make_user, fake_ai):
    user = make_user()
    fake_ai.queue({"summary": "Quer ganhar massa treinando 4x por semana", "objective_hint": "hipertrofia"})

    response = client.post(f"{API}/profile/onboarding", json={"answers": "quero ficar forte"}, headers=user["headers"])
    assert response.status_code == 200
    body = response.json()
    assert body["goal"] == "hipertrofia - Quer ganhar massa treinando 4x por semana"
    assert body["total_tokens"] == 42

    stored = get_user(db, user["id"])
    assert stored["profile"]["goal"] == body["goal"]
    assert stored["onboarding"]["completed"] is True
    assert stored["preferences"]["onboard_completed"] is True
    assert stored["stats"]["token_usage"][0]["value"] == 42


def test_profile_weight_is_kept_once_per_day(client, db, make_user):
    user = make_user()
    client.patch(f"{API}/profile", data={"weight": "80.5"}, headers=user["headers"])
    response = client.patch(f"{API}/profile", data={"weight": "81", "city": " Recife "}, headers=user["headers"])
    assert response.status_code == 200

    profile = response.json()["user"]["profile"]
    assert [m["value"] for m in profile["weight_history"]] == [81.0]
    assert profile["city"] == "Recife"


def test_profile_location_and_avatar(client, db, make_user):
    user = make_user()
    response = client.patch(
        f"{API}/profile",
        data={"lat": "-8.05", "lng": "-34.9"},
        files={"avatar": ("me.png", b"\x89PNG fake image", "image/png")},
        headers=user["headers"],
    )
    assert response.status_code == 200
    body = response.json()["user"]
    assert body["profile"]["location"] == {"type": "Point", "coordinates": [-34.9, -8.05]}
    assert body["avatar"].startswith("http://testserver/uploads/")


def test_profile_rejects_non_image_avatar(client, make_user):
    user = make_user()
    response = client.patch(
        f"{API}/profile",
        files={"avatar": ("notes.txt", b"hello", "text/plain")},
        headers=user["headers"],
    )
    assert response.status_code == 422
    assert response.json()["code"] == "UNSUPPORTED_MEDIA"


def test_profile_rejects_half_coordinates(client, make_user):
    user = make_user()
    response = client.patch(f"{API}/profile", data={"lat": "10"}, headers=user["headers"])
    assert response.status_code == 422


def test_student_view_requires_professional(client, make_user):
    user = make_user()
    other = make_user()
    response = client.get(f"{API}/profile/students/{other['id']}", headers=user["headers"])
    assert response.status_code == 403
    assert response.json()["code"] == "NOT_YOUR_STUDENT"


def test_onboarding_with_non_text_summary(client, db, make_user, fake_ai):
    user = make_user()
    fake_ai.queue({"summary": {"text": "ganhar massa"}, "objective_hint": ["hipertrofia"]})

    response = client.post(f"{API}/profile/onboarding", json={"answers": "quero ficar forte"}, headers=user["headers"])
    assert response.status_code == 502
    assert response.json()["code"] == "AI_INVALID_RESPONSE"
    assert not get_user(db, user["id"]).get("onboarding", {}).get("completed")
