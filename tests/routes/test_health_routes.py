def test_health_check(anonymous_client):
    response = anonymous_client.get("/api/health")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "lively-icons-api"
    assert body["environment"] == "test"


def test_prometheus_scrape_is_public(anonymous_client):
    anonymous_client.get("/api/health")

    response = anonymous_client.get("/metrics/prometheus")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "lively_icons_http_requests_total" in response.text
