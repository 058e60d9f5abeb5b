import pytest
from starlette.websockets import WebSocketDisconnect

from app.main import app
from app.websockets.connection_manager import manager


def test_dashboard_requires_session(client):
    response = client.get("/dashboard", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/login"


def test_dashboard_page_renders_panels(signed_in):
    response = signed_in.get("/dashboard")
    assert response.status_code == 200
    body = response.text
    assert "Pour foundation" in body
    assert "Inspect rebar" in body
    assert "Order steel" not in body
    assert "Permit approval" in body
    assert "Crane delivery" in body
    assert "Concrete curing" not in body
    assert "clear sky in Kathmandu" in body
    assert "21.5°C" in body
    assert "S-Curve (Progress)" in body
    assert 'id="project-map"' in body


def test_dashboard_page_reports_weather_error(signed_in, weather):
    from app.core.exceptions import IntegrationError

    weather.results = [IntegrationError("Request failed with status code 401")]
    body = signed_in.get("/dashboard").text
    assert "Error fetching data: Request failed with status code 401" in body
    assert "Loading weather..." in body
    assert "Pour foundation" in body


def test_dashboard_json(signed_in):
    data = signed_in.get("/api/v1/dashboard/").json()
    assert [p["task"] for p in data["plans"]] == ["Inspect rebar", "Pour foundation"]
    assert {w["status"] for w in data["workflows"]} == {"delayed"}
    assert len(data["projects"]) == 2
    assert data["weather"] == {"temperature": 21.5, "description": "clear sky", "location": "Kathmandu"}
    assert data["loading"] is False


def test_dashboard_json_requires_session(client):
    assert client.get("/api/v1/dashboard/").status_code == 401


def test_refresh_is_scheduled(signed_in, loader):
    response = signed_in.post("/api/v1/dashboard/refresh")
    assert response.status_code == 202
    assert response.json()["scheduled"] is True


def test_websocket_receives_dashboard_updates(signed_in, loader):
    loader.add_listener(manager.broadcast_snapshot)
    with signed_in.websocket_connect("/ws?subscribe=dashboard_updated") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "connection_established"
        assert hello["subscriptions"] == ["dashboard_updated"]

        signed_in.get("/api/v1/dashboard/")
        update = ws.receive_json()
        assert update["type"] == "dashboard_updated"
        assert update["data"]["weather"]["location"] == "Kathmandu"

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.json()["status"] in ("healthy", "degraded")
    assert app.state.plans_listener is None


def test_snapshot_returns_last_loaded_state(signed_in, loader):
    before = signed_in.get("/api/v1/dashboard/snapshot").json()
    assert before["generation"] == 0
    assert before["plans"] == []

    signed_in.get("/api/v1/dashboard/")
    after = signed_in.get("/api/v1/dashboard/snapshot").json()
    assert after["generation"] == 1
    assert len(after["plans"]) == 2


def test_integrations_report_configured_keys(client):
    data = client.get("/api/v1/integrations").json()
    assert data["integrations"] == {"supabase": True, "openweathermap": True, "jwt_secret": True}
    assert data["ready"] is True
    assert data["missing"] == []


def test_anonymous_websocket_is_refused(client, loader):
    loader.add_listener(manager.broadcast_snapshot)
    with pytest.raises(WebSocketDisconnect) as refused:
        with client.websocket_connect("/ws?subscribe=dashboard_updated"):
            pass
    assert refused.value.code == 1008


def test_websocket_with_invalid_token_is_refused(client):
    client.cookies.set("sb-access-token", "not-a-jwt")
    with pytest.raises(WebSocketDisconnect) as refused:
        with client.websocket_connect("/ws"):
            pass
    assert refused.value.code == 1008


def test_map_fragment_follows_latest_projects(signed_in):
    signed_in.get("/api/v1/dashboard/")
    response = signed_in.get("/dashboard/map")
    assert response.status_code == 200
    assert "Bridge Retrofit" in response.text
    assert "Hospital Wing" in response.text

    page = signed_in.get("/dashboard")
    assert 'fetch("/dashboard/map"' in page.text


def test_map_fragment_requires_session(client):
    assert client.get("/dashboard/map").status_code == 401
