from conftest import API, get_user

PLAN = {
    "workouts": [
        {
            "name": "Treino A",
            "description": "Peito e triceps",
            "exercises": [
                {"name": "Supino reto", "sets": "4", "reps": 10, "rpe": 8},
                {"name": "Triceps corda", "sets": 3, "reps": "12"},
            ],
        },
        {"name": "Treino B", "order": 5, "exercises": [{"name": "Agachamento", "sets": 4, "reps": 8}]},
    ]
}


def _generate(client, user, fake_ai):
    fake_ai.queue(PLAN)
    response = client.post(f"{API}/workouts/generate", json={}, headers=user["headers"])
    assert response.status_code == 200, response.text
    return response.json()


def test_generate_initial_plan(client, db, make_user, fake_ai):
    user = make_user()
    body = _generate(client, user, fake_ai)

    assert body["generated"] is True
    assert body["total_tokens"] == 42
    workouts = body["workouts"]
    assert [w["order"] for w in workouts] == [1, 5]
    assert all(w["workout_id"] for w in workouts)
    assert workouts[0]["exercises"][0]["sets"] == 4
    assert workouts[0]["exercises"][1]["order"] == 2

    stored = get_user(db, user["id"])
    assert len(stored["workouts"]) == 2
    assert stored["stats"]["token_usage"][0]["value"] == 42


def test_generate_returns_existing_plan(client, make_user, fake_ai):
    user = make_user()
    _generate(client, user, fake_ai)

    response = client.post(f"{API}/workouts/generate", json={}, headers=user["headers"])
    assert response.status_code == 200
    body = response.json()
    assert body["generated"] is False
    assert body["total_tokens"] == 0
    assert len(fake_ai.calls) == 1


def test_generate_blocked_for_inactive_paid_plan(client, make_user):
    user = make_user(plan="pro")
    response = client.post(f"{API}/workouts/generate", json={}, headers=user["headers"])
    assert response.status_code == 403
    assert response.json()["code"] == "PLAN_INACTIVE"


def test_generate_with_empty_ai_output(client, make_user, fake_ai):
    user = make_user()
    fake_ai.queue("sorry, no plan")
    response = client.post(f"{API}/workouts/generate", json={}, headers=user["headers"])
    assert response.status_code == 502
    assert response.json()["code"] == "AI_INVALID_RESPONSE"


def test_replace_and_delete(client, make_user):
    user = make_user()
    response = client.put(
        f"{API}/workouts",
        json={"workouts": [{"name": "Full body", "exercises": [{"name": "Remada", "sets": 3}]}]},
        headers=user["headers"],
    )
    assert response.status_code == 200
    workout = response.json()["workouts"][0]
    exercise_id = workout["exercises"][0]["exercise_id"]

    response = client.delete(
        f"{API}/workouts/{workout['workout_id']}/exercises/{exercise_id}",
        headers=user["headers"],
    )
    assert response.status_code == 200
    assert response.json()["workout"]["exercises"] == []

    response = client.delete(f"{API}/workouts/{workout['workout_id']}/exercises/{exercise_id}", headers=user["headers"])
    assert response.status_code == 404

    response = client.delete(f"{API}/workouts/{workout['workout_id']}", headers=user["headers"])
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = client.delete(f"{API}/workouts/{workout['workout_id']}", headers=user["headers"])
    assert response.status_code == 404


def test_history_entry_defaults(client, make_user):
    user = make_user()
    response = client.post(
        f"{API}/workouts/history",
        json={"workout_id": "w-1", "workout_name": "Treino A", "duration": "-5"},
        headers=user["headers"],
    )
    assert response.status_code == 201
    entry = response.json()["entry"]
    assert entry["duration"] == 0
    assert entry["performed_at"]

    listing = client.get(f"{API}/workouts", headers=user["headers"]).json()
    assert listing["history"][0]["workout_name"] == "Treino A"


def test_ai_workout_appended_with_next_order(client, make_user, fake_ai):
    user = make_user()
    _generate(client, user, fake_ai)
    fake_ai.queue({"success": True, "workout": {"name": "Treino C", "exercises": [{"name": "Terra"}]}})

    response = client.post(f"{API}/workouts/ai", json={"name": "Treino C"}, headers=user["headers"])
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["workout"]["order"] == 3


def test_ai_workout_refusal(client, make_user, fake_ai):
    user = make_user()
    fake_ai.queue({"success": False, "reason": "Not a workout"})
    response = client.post(f"{API}/workouts/ai", json={"name": "bolo de cenoura"}, headers=user["headers"])
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["reason"] == "Not a workout"


def test_ai_workout_unparseable(client, make_user, fake_ai):
    user = make_user()
    fake_ai.queue("no json here")
    response = client.post(f"{API}/workouts/ai", json={"name": "Treino C"}, headers=user["headers"])
    assert response.status_code == 502
    assert response.json()["code"] == "AI_INVALID_RESPONSE"


def test_ai_exercise_appended(client, make_user, fake_ai):
    user = make_user()
    workouts = _generate(client, user, fake_ai)["workouts"]
    fake_ai.queue({"success": True, "exercise": {"name": "Crucifixo", "sets": 3, "reps": 12}})

    response = client.post(
        f"{API}/workouts/{workouts[0]['workout_id']}/exercises/ai",
        json={"name": "Crucifixo"},
        headers=user["headers"],
    )
    assert response.status_code == 200
    body = response.json()
    assert body["exercise"]["order"] == 3
    assert len(body["workout"]["exercises"]) == 3


def test_acting_for_someone_else_requires_accepted_student(client, make_user):
    coach = make_user()
    stranger = make_user()
    response = client.put(
        f"{API}/workouts",
        json={"workouts": [], "student_id": stranger["id"]},
        headers=coach["headers"],
    )
    assert response.status_code == 403
    assert response.json()["code"] == "NOT_YOUR_STUDENT"


def test_replace_joins_listed_muscles(client, make_user):
    user = make_user()
    response = client.put(
        f"{API}/workouts",
        json={"workouts": [{"name": "A", "exercises": [{"name": "Squat", "muscle": ["legs", "glutes"]}]}]},
        headers=user["headers"],
    )
    assert response.status_code == 200, response.text
    assert response.json()["workouts"][0]["exercises"][0]["muscle"] == "legs, glutes"


def test_replace_rejects_malformed_exercise(client, db, make_user):
    user = make_user()
    response = client.put(
        f"{API}/workouts",
        json={"workouts": [{"name": "A", "exercises": [{"name": {"pt": "Agachamento"}}]}]},
        headers=user["headers"],
    )
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert response.json()["details"]
    assert get_user(db, user["id"]).get("workouts", []) == []


def test_ai_workout_tolerates_loose_types(client, make_user, fake_ai):
    user = make_user()
    fake_ai.queue({
        "success": True,
        "workout": {
            "name": "Peito",
            "exercises": [{"name": "Supino", "muscle": ["peitoral", "triceps"], "reps": "8-12", "rpe": 80}],
        },
    })

    response = client.post(f"{API}/workouts/ai", json={"name": "Peito"}, headers=user["headers"])
    assert response.status_code == 200, response.text
    exercise = response.json()["workout"]["exercises"][0]
    assert exercise["muscle"] == "peitoral, triceps"
    assert exercise["reps"] == 8
    assert exercise["rpe"] is None


def test_ai_workout_with_malformed_fields(client, db, make_user, fake_ai):
    user = make_user()
    fake_ai.queue({"success": True, "workout": {"name": "Peito", "description": {"text": "x"}}})

    response = client.post(f"{API}/workouts/ai", json={"name": "Peito"}, headers=user["headers"])
    assert response.status_code == 502
    assert response.json()["code"] == "AI_INVALID_RESPONSE"
    assert get_user(db, user["id"]).get("workouts", []) == []


def test_ai_exercise_with_malformed_fields(client, make_user, fake_ai):
    user = make_user()
    workouts = _generate(client, user, fake_ai)["workouts"]
    fake_ai.queue({"success": True, "exercise": {"name": "Crucifixo", "instructions": {"step": 1}}})

    response = client.post(
        f"{API}/workouts/{workouts[0]['workout_id']}/exercises/ai",
        json={"name": "Crucifixo"},
        headers=user["headers"],
    )
    assert response.status_code == 502
    assert response.json()["code"] == "AI_INVALID_RESPONSE"


def test_token_usage_accumulates_in_one_daily_entry(client, db, make_user, fake_ai):
    user = make_user()
    _generate(client, user, fake_ai)
    fake_ai.queue({"success": True, "workout": {"name": "Treino C", "exercises": [{"name": "Terra"}]}})
    assert client.post(f"{API}/workouts/ai", json={"name": "Treino C"}, headers=user["headers"]).status_code == 200

    usage = get_user(db, user["id"])["stats"]["token_usage"]
    assert len(usage) == 1
    assert usage[0]["value"] == 84
