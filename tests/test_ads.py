from bson import ObjectId

from conftest import API, get_user, run

PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 128


def _create(client, user, title="Academia Forte", city=None, content=PNG, content_type="image/png", ad_type="image"):
    data = {"title": title, "ad_type": ad_type, "country": "Brasil", "state": "PE"}
    if city:
        data["city"] = city
    return client.post(
        f"{API}/ads",
        data=data,
        files={"media": ("ad.png", content, content_type)},
        headers=user["headers"],
    )


def _fund(db, user, amount):
    run(db["users"].update_one({"_id": ObjectId(user["id"])}, {"$set": {"impression_balance": amount}}))


def test_create_image_ad(client, make_user):
    user = make_user()
    response = _create(client, user)
    assert response.status_code == 201
    ad = response.json()["ad"]
    assert ad["status"] == "active"
    assert ad["stats"] == {"impressions": 0, "clicks": 0}
    assert ad["media_url"].startswith("http://testserver/uploads/")


def test_ad_limit_per_user(client, make_user):
    user = make_user()
    for n in range(5):
        assert _create(client, user, title=f"Ad {n}").status_code == 201

    response = _create(client, user, title="Ad 6")
    assert response.status_code == 409
    assert response.json()["code"] == "AD_LIMIT"


def test_oversized_image_is_rejected(client, make_user):
    user = make_user()
    response = _create(client, user, content=b"0" * (1024 * 1024 + 1))
    assert response.status_code == 413


def test_wrong_media_type_for_ad_type(client, make_user):
    user = make_user()
    response = _create(client, user, ad_type="video")
    assert response.status_code == 422
    assert response.json()["code"] == "UNSUPPORTED_MEDIA"

    unknown = _create(client, user, ad_type="banner")
    assert unknown.status_code == 422


def test_serving_falls_back_and_requires_balance(client, db, make_user):
    owner = make_user()
    _create(client, owner, title="Recife", city="Recife")

    unfunded = client.get(f"{API}/ads", params={"country": "Brasil"}).json()
    assert unfunded == {"items": [], "scope": "all"}

    _fund(db, owner, 10)
    by_city = client.get(f"{API}/ads", params={"country": "brasil", "state": "pe", "city": "recife"}).json()
    assert by_city["scope"] == "city"

    fallback = client.get(f"{API}/ads", params={"country": "Brasil", "state": "PE", "city": "Olinda"}).json()
    assert fallback["scope"] == "state"
    assert fallback["items"][0]["title"] == "Recife"

    mine = client.get(f"{API}/ads", params={"user_id": owner["id"]}).json()
    assert mine["scope"] == "user"


def test_impressions_spend_balance(client, db, make_user):
    owner = make_user()
    ad_id = _create(client, owner).json()["ad"]["ad_id"]
    _fund(db, owner, 1)

    assert client.post(f"{API}/ads/{ad_id}/impression").json() == {"counted": True}
    assert client.post(f"{API}/ads/{ad_id}/impression").json() == {"counted": False}
    assert get_user(db, owner["id"])["impression_balance"] == 0

    stored = run(db["advertisements"].find_one({"ad_id": ad_id}))
    assert stored["stats"]["impressions"] == 1


def test_click_returns_link(client, make_user):
    owner = make_user()
    response = client.post(
        f"{API}/ads",
        data={"title": "Loja", "ad_type": "image", "link": "https://loja.example.com"},
        files={"media": ("ad.png", PNG, "image/png")},
        headers=owner["headers"],
    )
    ad_id = response.json()["ad"]["ad_id"]

    click = client.post(f"{API}/ads/{ad_id}/click")
    assert click.json() == {"link": "https://loja.example.com", "clicks": 1}
    assert client.post(f"{API}/ads/missing/click").status_code == 404


def test_delete_by_owner_or_admin(client, make_user):
    owner = make_user()
    other = make_user()
    admin = make_user("admin", role="admin")
    first = _create(client, owner).json()["ad"]["ad_id"]
    second = _create(client, owner).json()["ad"]["ad_id"]

    assert client.delete(f"{API}/ads/{first}", headers=other["headers"]).status_code == 403
    assert client.delete(f"{API}/ads/{first}", headers=owner["headers"]).status_code == 200
    assert client.delete(f"{API}/ads/{second}", headers=admin["headers"]).status_code == 200
    assert client.delete(f"{API}/ads/{second}", headers=admin["headers"]).status_code == 404


def test_admin_status_change(client, make_user):
    owner = make_user()
    admin = make_user("admin", role="admin")
    ad_id = _create(client, owner).json()["ad"]["ad_id"]
    url = f"{API}/admin/ads/{ad_id}/status"

    paused = client.patch(url, json={"status": "inactive"}, headers=admin["headers"])
    assert paused.status_code == 200
    assert paused.json()["ad"]["status"] == "inactive"

    assert client.patch(url, json={"status": "inactive"}, headers=admin["headers"]).status_code == 400
    assert client.patch(url, json={"status": "gone"}, headers=admin["headers"]).status_code == 422
