from fastapi.testclient import TestClient

from lendcase.api.app import app


def test_unhandled_exception_returns_standardized_500_with_request_id() -> None:
    @app.get("/boom")
    def boom() -> None:
        raise RuntimeError("boom")

    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/boom")

    assert response.status_code == 500
    assert response.headers.get("X-Request-Id")
    assert response.json() == {
        "error": {
            "code": "internal_error",
            "message": "Internal Server Error",
            "status": 500,
            "request_id": response.headers["X-Request-Id"],
        }
    }


def test_http_error_uses_standardized_error_schema() -> None:
    client = TestClient(app)
    response = client.post(
        "/underwriting/LN-1/evaluate",
        content="not json",
        headers={"Content-Type": "application/json", "X-Request-Id": "err-1"},
    )

    assert response.status_code == 400
    assert response.headers["X-Request-Id"] == "err-1"
    assert response.json() == {
        "error": {
            "code": "http_error",
            "message": "Invalid JSON body",
            "status": 400,
            "request_id": "err-1",
        }
    }


def test_case_not_found_uses_standardized_error_schema() -> None:
    client = TestClient(app)
    response = client.get(
        "/underwriting/LN-missing/summary", headers={"X-Request-Id": "err-2"}
    )

    assert response.status_code == 404
    assert response.json() == {
        "error": {
            "code": "case_not_found",
            "message": "No data on file for loan 'LN-missing'",
            "status": 404,
            "request_id": "err-2",
        }
    }
