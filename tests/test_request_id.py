from fastapi.testclient import TestClient

from lendcase.api.app import app


def test_request_id_header_is_propagated_when_provided() -> None:
    client = TestClient(app)

    response = client.get("/health", headers={"X-Request-Id": "abc"})

    assert response.status_code == 200
    assert response.headers["X-Request-Id"] == "abc"


def test_request_id_header_is_generated_when_missing() -> None:
    client = TestClient(app)

    response = client.get("/health")

    assert response.status_code == 200
    generated_request_id = response.headers.get("X-Request-Id")

    assert generated_request_id is not None
    assert generated_request_id.strip() != ""
    assert len(generated_request_id) >= 16


def test_request_id_is_echoed_in_underwriting_responses() -> None:
    client = TestClient(app)

    response = client.post(
        "/underwriting/LN-7/submissions/continuation",
        json={"formData": {"creditScore": 700}},
        headers={"X-Request-Id": "rid-77"},
    )

    assert response.status_code == 200
    assert response.json()["request_id"] == "rid-77"
    assert response.headers["X-Request-Id"] == "rid-77"


def test_unsafe_request_id_header_is_replaced() -> None:
    client = TestClient(app)

    for unsafe in ("../../escaped", "a/b", "x" * 200):
        response = client.get("/health", headers={"X-Request-Id": unsafe})

        assert response.status_code == 200
        assert response.headers["X-Request-Id"] != unsafe
        assert len(response.headers["X-Request-Id"]) >= 16
