import json

from bson import ObjectId

from conftest import API, PASSWORD, get_user, run


def _webhook(client, event, signature="valid"):
    return client.post(
        f"{API}/billing/webhook",
        content=json.dumps(event),
        headers={"stripe-signature": signature},
    )


def _event(event_id, event_type, obj):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def _subscribe(db, user, plan="pro", subscription_id="sub_1", status="active"):
    run(db["users"].update_one(
        {"_id": ObjectId(user["id"])},
        {"$set": {
            "plan_info.plan_type": plan,
            "plan_info.status": status,
            "plan_info.subscription_id": subscription_id,
            "plan_info.customer_id": f"cus_{user['id']}",
        }}
    ))


def test_plan_checkout(client, db, make_user, fake_gateway):
    user = make_user()
    response = client.post(f"{API}/billing/checkout", json={"plan": "max"}, headers=user["headers"])
    assert response.status_code == 200
    assert response.json()["url"] == "https://checkout.test/cs_test_1"

    _, mode, line_items, metadata = fake_gateway.calls[-1]
    assert mode == "subscription"
    assert line_items == [{"price": "price_max", "quantity": 1}]
    assert metadata == {"user_id": user["id"], "flow": "plan", "app": "treinai", "plan_type": "max"}
    assert get_user(db, user["id"])["plan_info"]["customer_id"] == f"cus_{user['id']}"

    client.post(f"{API}/billing/checkout", json={"plan": "pro"}, headers=user["headers"])
    assert [c[0] for c in fake_gateway.calls].count("create_customer") == 1


def test_checkout_rejects_free_plan(client, make_user):
    user = make_user()
    response = client.post(f"{API}/billing/checkout", json={"plan": "free"}, headers=user["headers"])
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PLAN"


def test_session_status(client, make_user):
    user = make_user()
    response = client.get(f"{API}/billing/session/cs_test_9", headers=user["headers"])
    assert response.json()["payment_status"] == "paid"


def test_change_plan_checks_password_and_plan(client, make_user):
    user = make_user()
    wrong = client.post(f"{API}/billing/plan", json={"plan": "pro", "password": "nope"}, headers=user["headers"])
    assert wrong.status_code == 403
    assert wrong.json()["code"] == "WRONG_PASSWORD"

    same = client.post(f"{API}/billing/plan", json={"plan": "free", "password": PASSWORD}, headers=user["headers"])
    assert same.status_code == 400
    assert same.json()["code"] == "UNCHANGED"

    unknown = client.post(f"{API}/billing/plan", json={"plan": "gold", "password": PASSWORD}, headers=user["headers"])
    assert unknown.status_code == 400
    assert unknown.json()["code"] == "INVALID_PLAN"


def test_change_to_free_cancels_subscription(client, db, make_user, fake_gateway):
    user = make_user()
    _subscribe(db, user)

    response = client.post(f"{API}/billing/plan", json={"plan": "free", "password": PASSWORD}, headers=user["headers"])
    assert response.status_code == 200
    assert response.json() == {"plan_type": "free", "status": "active"}
    assert ("cancel", "sub_1") in fake_gateway.calls

    plan_info = get_user(db, user["id"])["plan_info"]
    assert plan_info["plan_type"] == "free"
    assert plan_info["subscription_id"] is None


def test_change_between_paid_plans_reprices(client, db, make_user, fake_gateway):
    user = make_user()
    _subscribe(db, user, plan="pro")

    response = client.post(f"{API}/billing/plan", json={"plan": "coach", "password": PASSWORD}, headers=user["headers"])
    assert response.status_code == 200
    assert ("change_price", "sub_1", "price_coach") in fake_gateway.calls
    assert get_user(db, user["id"])["plan_info"]["plan_type"] == "coach"


def test_change_without_subscription_returns_checkout(client, make_user):
    user = make_user()
    response = client.post(f"{API}/billing/plan", json={"plan": "pro", "password": PASSWORD}, headers=user["headers"])
    assert response.status_code == 200
    body = response.json()
    assert body["plan_type"] == "pro"
    assert body["checkout_url"].startswith("https://checkout.test/")


def test_impressions_checkout(client, make_user, fake_gateway):
    user = make_user()
    too_small = client.post(f"{API}/billing/impressions", json={"amount_cents": 99}, headers=user["headers"])
    assert too_small.status_code == 422

    response = client.post(f"{API}/billing/impressions", json={"amount_cents": 1000}, headers=user["headers"])
    assert response.status_code == 200
    assert response.json()["impressions"] == 1750
    assert fake_gateway.calls[-1][1] == "payment"


def test_webhook_rejects_bad_signature(client):
    response = _webhook(client, _event("evt_1", "invoice.paid", {}), signature="forged")
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"


def test_webhook_requires_event_id(client):
    response = _webhook(client, {"type": "invoice.paid", "data": {"object": {}}})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_EVENT"


def test_impressions_credited_once(client, db, make_user):
    user = make_user()
    event = _event("evt_imp", "checkout.session.completed", {
        "id": "cs_1",
        "payment_status": "paid",
        "amount_total": 200,
        "metadata": {"user_id": user["id"], "flow": "impressions", "app": "treinai"},
    })

    assert _webhook(client, event).json() == {"received": True}
    assert _webhook(client, event).json() == {"received": True, "duplicate": True}
    assert get_user(db, user["id"])["impression_balance"] == 350


def test_checkout_from_another_app_is_ignored(client, db, make_user):
    user = make_user()
    event = _event("evt_other", "checkout.session.completed", {
        "id": "cs_2",
        "payment_status": "paid",
        "metadata": {"user_id": user["id"], "flow": "impressions", "impressions": "500", "app": "other"},
    })
    assert _webhook(client, event).status_code == 200
    assert get_user(db, user["id"])["impression_balance"] == 0


def test_plan_activation_flow(client, db, make_user):
    user = make_user()
    completed = _event("evt_c", "checkout.session.completed", {
        "id": "cs_3",
        "subscription": "sub_9",
        "customer": "cus_9",
        "payment_status": "unpaid",
        "metadata": {"user_id": user["id"], "flow": "plan", "plan_type": "max", "app": "treinai"},
    })
    _webhook(client, completed)
    plan_info = get_user(db, user["id"])["plan_info"]
    assert plan_info["plan_type"] == "max"
    assert plan_info["subscription_id"] == "sub_9"

    paid = _event("evt_p", "invoice.paid", {
        "id": "in_1",
        "customer": "cus_9",
        "amount_paid": 4990,
        "parent": {"subscription_details": {"subscription": "sub_9"}},
        "lines": {"data": [{"period": {"end": 1767225600}}]},
    })
    assert _webhook(client, paid).status_code == 200

    plan_info = get_user(db, user["id"])["plan_info"]
    assert plan_info["status"] == "active"
    assert plan_info["next_payment_value"] == 49.9
    assert plan_info["last_invoice_id"] == "in_1"
    assert plan_info["expiration_date"].year == 2026


def test_payment_failure_and_cancellation(client, db, make_user):
    user = make_user()
    _subscribe(db, user, plan="max", subscription_id="sub_5")

    _webhook(client, _event("evt_f", "invoice.payment_failed", {"id": "in_5", "subscription": "sub_5"}))
    assert get_user(db, user["id"])["plan_info"]["status"] == "inactive"

    _webhook(client, _event("evt_d", "customer.subscription.deleted", {"id": "sub_5"}))
    plan_info = get_user(db, user["id"])["plan_info"]
    assert plan_info["plan_type"] == "free"
    assert plan_info["status"] == "active"
    assert plan_info["subscription_id"] is None


def test_unhandled_event_is_acknowledged(client, db):
    response = _webhook(client, _event("evt_u", "customer.created", {"id": "cus_1"}))
    assert response.json() == {"received": True}
    assert run(db["processed_events"].count_documents({"event_id": "evt_u"})) == 1
