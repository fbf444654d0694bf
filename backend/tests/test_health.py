from fastapi.testclient import TestClient

from storefront.main import app

client = TestClient(app)


def test_health_ok():
    res = client.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["db"] is True
    assert "proof_storage" in body
    assert "notifications" in body
