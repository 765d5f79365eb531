from conftest import API


def _open(client, user, subject="Como cancelo?", description="Quero cancelar meu plano"):
    response = client.post(
        f"{API}/supports",
        json={"subject": subject, "description": description},
        headers=user["headers"],
    )
    assert response.status_code == 201
    return response.json()["support"]


def test_ticket_is_private_until_published(client, make_user):
    user = make_user()
    admin = make_user("admin", role="admin")
    ticket = _open(client, user)
    assert ticket["private"] is True
    assert ticket["answer"] is None

    assert client.get(f"{API}/supports").json()["pagination"]["total"] == 0

    answered = client.post(
        f"{API}/admin/supports/{ticket['support_id']}/answer",
        json={"answer": "Pela tela de planos"},
        headers=admin["headers"],
    )
    assert answered.status_code == 200
    assert answered.json()["support"]["answer"] == "Pela tela de planos"

    published = client.patch(
        f"{API}/admin/supports/{ticket['support_id']}/visibility",
        json={"private": "false"},
        headers=admin["headers"],
    )
    assert published.status_code == 200
    assert published.json()["support"]["private"] is False

    listing = client.get(f"{API}/supports", params={"search": "PLANOS"}).json()
    assert listing["pagination"]["total"] == 1
    assert "user_email" not in listing["items"][0]


def test_visibility_unchanged_and_invalid(client, make_user):
    user = make_user()
    admin = make_user("admin", role="admin")
    ticket = _open(client, user)
    url = f"{API}/admin/supports/{ticket['support_id']}/visibility"

    unchanged = client.patch(url, json={"private": True}, headers=admin["headers"])
    assert unchanged.status_code == 400
    assert unchanged.json()["code"] == "UNCHANGED"

    invalid = client.patch(url, json={"private": "maybe"}, headers=admin["headers"])
    assert invalid.status_code == 422


def test_public_listing_is_paginated(client, make_user):
    user = make_user()
    admin = make_user("admin", role="admin")
    for n in range(3):
        ticket = _open(client, user, subject=f"Duvida {n}")
        client.patch(
            f"{API}/admin/supports/{ticket['support_id']}/visibility",
            json={"private": False},
            headers=admin["headers"],
        )

    page = client.get(f"{API}/supports", params={"page": 2, "per_page": 2}).json()
    assert len(page["items"]) == 1
    assert page["pagination"] == {"page": 2, "per_page": 2, "total": 3, "total_pages": 2}


def test_admin_filters(client, make_user):
    user = make_user()
    admin = make_user("admin", role="admin")
    first = _open(client, user, subject="A")
    _open(client, user, subject="B")
    client.post(
        f"{API}/admin/supports/{first['support_id']}/answer",
        json={"answer": "Feito"},
        headers=admin["headers"],
    )

    answered = client.get(f"{API}/admin/supports", params={"filter": "answered"}, headers=admin["headers"]).json()
    assert [t["subject"] for t in answered["items"]] == ["A"]

    unanswered = client.get(f"{API}/admin/supports", params={"filter": "unanswered"}, headers=admin["headers"]).json()
    assert [t["subject"] for t in unanswered["items"]] == ["B"]

    private = client.get(f"{API}/admin/supports", params={"private": "true"}, headers=admin["headers"]).json()
    assert private["total"] == 2

    bad = client.get(f"{API}/admin/supports", params={"filter": "old"}, headers=admin["headers"])
    assert bad.status_code == 422


def test_admin_routes_require_admin(client, make_user):
    user = make_user()
    for path in ("/admin/users", "/admin/ads", "/admin/supports"):
        response = client.get(f"{API}{path}", headers=user["headers"])
        assert response.status_code == 403


def test_admin_user_listing_hides_passwords(client, make_user):
    make_user()
    admin = make_user("admin", role="admin")
    body = client.get(f"{API}/admin/users", headers=admin["headers"]).json()
    assert body["total"] == 2
    assert all("password" not in u for u in body["users"])


def test_answer_requires_text(client, make_user):
    user = make_user()
    admin = make_user("admin", role="admin")
    ticket = _open(client, user)
    response = client.post(
        f"{API}/admin/supports/{ticket['support_id']}/answer",
        json={"answer": "   "},
        headers=admin["headers"],
    )
    assert response.status_code == 422

    missing = client.post(f"{API}/admin/supports/nope/answer", json={"answer": "x"}, headers=admin["headers"])
    assert missing.status_code == 404
