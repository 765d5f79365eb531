import asyncio
import json
import os
import tempfile

# Settings are read at import time
os.environ["ENVIRONMENT"] = "test"
os.environ["MONGODB_USE_TRANSACTIONS"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_dummy"
os.environ["STRIPE_PRICE_PRO"] = "price_pro"
os.environ["STRIPE_PRICE_MAX"] = "price_max"
os.environ["STRIPE_PRICE_COACH"] = "price_coach"
os.environ["STRIPE_PRICE_LOCAL"] = "price_local"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="treinai-uploads-")

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from treinai.api.deps import get_ai, get_gateway
from treinai.core.exceptions import BadRequestError
from treinai.db.mongo import use_database
from treinai.main import app
from treinai.services.ai_service import AICompletion, AIService
from treinai.services.payment_gateway import PaymentGateway

API = "/api/v1"
PASSWORD = "Treino2024"


def run(coro):
    return asyncio.run(coro)


class FakeAI(AIService):
    """Returns scripted completions and remembers the prompts it was sent."""

    def __init__(self):
        super().__init__(client=None, model="fake-model")
        self.replies = []
        self.calls = []

    def queue(self, *replies):
        for reply in replies:
            self.replies.append(reply if isinstance(reply, str) else json.dumps(reply))

    async def complete(self, messages, max_tokens=None, temperature=0.2):
        self.calls.append(messages)
        text = self.replies.pop(0) if self.replies else "{}"
        return AICompletion(text=text, total_tokens=42)


class FakeGateway(PaymentGateway):
    """Records provider calls instead of talking to Stripe."""

    def __init__(self):
        super().__init__(api_key="sk_test_dummy", webhook_secret="whsec_dummy")
        self.calls = []
        self.sessions = 0

    async def create_customer(self, email, name, user_id):
        self.calls.append(("create_customer", email))
        return f"cus_{user_id}"

    async def create_checkout_session(self, customer_id, mode, line_items, metadata):
        self.sessions += 1
        session_id = f"cs_test_{self.sessions}"
        self.calls.append(("checkout", mode, line_items, metadata))
        return {"id": session_id, "url": f"https://checkout.test/{session_id}"}

    async def retrieve_session(self, session_id):
        self.calls.append(("retrieve_session", session_id))
        return {"id": session_id, "status": "complete", "payment_status": "paid", "metadata": {}}

    async def change_subscription_price(self, subscription_id, price_id):
        self.calls.append(("change_price", subscription_id, price_id))

    async def cancel_subscription(self, subscription_id):
        self.calls.append(("cancel", subscription_id))

    def construct_event(self, payload, signature):
        if signature != "valid":
            raise BadRequestError("Invalid webhook signature", code="INVALID_SIGNATURE")
        return json.loads(payload)


async def _create_unique_indexes(db):
    await db["users"].create_index("email", unique=True)
    await db["professionals"].create_index("user_id", unique=True)
    await db["processed_events"].create_index("event_id", unique=True)


@pytest.fixture(autouse=True)
def db():
    mongo = AsyncMongoMockClient()
    database = mongo["treinai_test"]
    use_database(mongo, database)
    run(_create_unique_indexes(database))
    yield database
    use_database(None, None)


@pytest.fixture
def fake_ai():
    return FakeAI()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def client(fake_ai, fake_gateway):
    app.dependency_overrides[get_ai] = lambda: fake_ai
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(client, db):
    """
    Signs up a user through the API and returns
    {"id", "token", "headers", "email"}.
    """
    counter = {"n": 0}

    def _make(username=None, plan="free", role=None, plan_status=None):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        email = f"{username}@example.com"
        response = client.post(f"{API}/auth/signup", json={
            "username": username,
            "email": email,
            "password": PASSWORD,
            "plan": plan,
        })
        assert response.status_code == 201, response.text
        body = response.json()
        user_id = body["user"]["id"]

        updates = {}
        if role:
            updates["role"] = role
        if plan_status:
            updates["plan_info.status"] = plan_status
        if updates:
            run(db["users"].update_one({"_id": ObjectId(user_id)}, {"$set": updates}))

        return {
            "id": user_id,
            "email": email,
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _make


def get_user(db, user_id):
    return run(db["users"].find_one({"_id": ObjectId(user_id)}))
