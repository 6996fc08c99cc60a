from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from upi_verify.utils.rate_limiter import rate_limit, reset_rate_limits


def _app() -> FastAPI:
    app = FastAPI()

    @app.post("/upload", dependencies=[Depends(rate_limit(requests=2, window=60))])
    def upload():
        return {"ok": True}

    return app


def test_requests_beyond_the_window_budget_are_throttled():
    reset_rate_limits()
    client = TestClient(_app())

    assert client.post("/upload", headers={"user-id": "user-1"}).status_code == 200
    assert client.post("/upload", headers={"user-id": "user-1"}).status_code == 200
    response = client.post("/upload", headers={"user-id": "user-1"})

    assert response.status_code == 429
    assert "Too many uploads" in response.json()["detail"]
    reset_rate_limits()


def test_budget_is_per_user():
    reset_rate_limits()
    client = TestClient(_app())

    for _ in range(2):
        client.post("/upload", headers={"user-id": "user-1"})

    assert client.post("/upload", headers={"user-id": "user-2"}).status_code == 200
    reset_rate_limits()
