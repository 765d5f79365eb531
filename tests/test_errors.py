from pydantic import BaseModel

from treinai.core.exceptions import ConflictError, ResourceNotFoundError
from treinai.main import app

from conftest import API


def test_404_not_found(client):
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"


def test_validation_error_structure(client):
    class Item(BaseModel):
        name: str
        price: int

    @app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


def test_custom_exception(client):
    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise ResourceNotFoundError(message="Item not found")

    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "Item not found"


def test_overridden_code_and_details(client):
    @app.get("/test-conflict-error")
    def trigger_conflict():
        raise ConflictError("Busy", code="COACH_CONFLICT", details={"can_force": True})

    response = client.get("/test-conflict-error")
    assert response.status_code == 409
    assert response.json() == {"error": "Busy", "code": "COACH_CONFLICT", "details": {"can_force": True}}


def test_missing_token_is_401(client):
    response = client.get(f"{API}/auth/me")
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"


def test_invalid_token_is_403(client):
    response = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 403
    assert response.json()["code"] == "INVALID_TOKEN"


def test_liveness(client):
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}
