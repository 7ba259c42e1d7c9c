def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "service": "puzzle-tracker-api",
        "record_store": "memory",
    }


def test_root_endpoint(client):
    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Welcome to Puzzle Post-Discharge Tracker API"
    assert body["docs"] == "/docs"
    assert body["health"] == "/health"


def test_responses_carry_request_id_and_security_headers(client):
    response = client.get("/health", headers={"X-Request-Id": "req-123"})

    assert response.headers["X-Request-Id"] == "req-123"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
