"""Tests for the demo API endpoints"""

from fastapi.testclient import TestClient


def test_hello(app):
    client = TestClient(app)

    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Hello, World!"}


def test_greeting_strips_name(app):
    client = TestClient(app)

    response = client.get("/greetings/%20Grace%20")

    assert response.status_code == 200
    assert response.json()["message"] == "Hello, Grace!"


def test_overlong_name_is_rejected(app):
    client = TestClient(app)

    response = client.get("/greetings/" + "x" * 65)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "InvalidName"
    assert body["details"]["reason"] == "longer than 64 characters"


def test_blank_name_is_rejected(app):
    client = TestClient(app)

    response = client.get("/greetings/%20%20")

    assert response.status_code == 400
    assert response.json()["details"]["reason"] == "name is blank"


def test_health_reports_startup_time(app):
    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["started_at"]
