from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from backend import main
from backend.errors import InferenceError

PILLAR_REPLY = json.dumps({"year": "庚午", "month": "辛巳", "day": "甲子", "hour": "丙寅"})


class StubGateway:
    model = "stub-model"
    configured = True

    def __init__(self, pillar_reply=PILLAR_REPLY, failing_sections=()):
        self.pillar_reply = pillar_reply
        self.failing_sections = set(failing_sections)
        self.stages: list[str] = []

    async def generate(self, prompt: str, *, request_id: str = "-", stage: str = "-") -> str:
        self.stages.append(stage)
        if stage == "pillars":
            return self.pillar_reply
        if stage.split(":", 1)[1] in self.failing_sections:
            raise InferenceError("모델 호출 한도를 초과했습니다.")
        return f"**{stage}** 해석"


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def client(gateway):
    main.app.dependency_overrides[main.get_gateway] = lambda: gateway
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()


def _body(**overrides) -> dict:
    body = {
        "name": "Kim",
        "gender": "male",
        "calendarType": "solar",
        "year": "1990",
        "month": "5",
        "day": "12",
        "hour": "",
        "isLeapMonth": False,
        "section": "basic",
    }
    body.update(overrides)
    return body


def test_get_saju_returns_reading_and_pillars(client, gateway) -> None:
    response = client.post("/api/get-saju", json=_body(hour="14"))
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["sajuResult"] == "**section:basic** 해석"
    assert data["pillars"] == {"year": "庚午", "month": "辛巳", "day": "甲子", "hour": "丙寅"}
    assert gateway.stages == ["pillars", "section:basic"]


def test_missing_field_is_400_without_upstream_call(client, gateway) -> None:
    response = client.post("/api/get-saju", json=_body(name=""))
    assert response.status_code == 400
    assert response.json()["error"].startswith("필수 정보가 누락되었습니다.")
    assert gateway.stages == []


def test_non_json_body_is_400(client, gateway) -> None:
    response = client.post("/api/get-saju", content=b"{not json", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert "error" in response.json()
    assert gateway.stages == []


def test_missing_body_is_400(client) -> None:
    response = client.post("/api/get-saju")
    assert response.status_code == 400


def test_pillar_parse_failure_is_500_with_message(client, gateway) -> None:
    gateway.pillar_reply = json.dumps({"year": "庚午", "month": "辛巳", "hour": None})
    response = client.post("/api/get-saju", json=_body())
    assert response.status_code == 500
    assert response.json()["error"].startswith("AI로부터 사주팔자를 계산하는 데 실패했습니다.")
    assert gateway.stages == ["pillars"]


def test_section_failure_message_is_surfaced_verbatim(client, gateway) -> None:
    gateway.failing_sections = {"wealth"}
    response = client.post("/api/get-saju", json=_body(section="wealth"))
    assert response.status_code == 500
    assert response.json() == {"error": "모델 호출 한도를 초과했습니다."}


def test_threaded_pillars_skip_recomputation(client, gateway) -> None:
    pillars = {"year": "庚午", "month": "辛巳", "day": "甲子", "hour": None}
    response = client.post("/api/get-saju", json=_body(section="health", pillars=pillars))
    assert response.status_code == 200
    assert gateway.stages == ["section:health"]
    assert response.json()["pillars"] == pillars


def test_request_id_is_echoed(client) -> None:
    response = client.post("/api/get-saju", json=_body(), headers={"x-request-id": "abc-123"})
    assert response.headers["x-request-id"] == "abc-123"
    generated = client.post("/api/get-saju", json=_body())
    assert generated.headers["x-request-id"]


def test_pillars_endpoint(client, gateway) -> None:
    response = client.post("/api/pillars", json=_body(section=None))
    assert response.status_code == 200
    assert response.json()["pillars"]["year"] == "庚午"
    assert gateway.stages == ["pillars"]


def test_unexpected_error_is_500(client, gateway, monkeypatch) -> None:
    async def boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(gateway, "generate", boom)
    response = client.post("/api/get-saju", json=_body())
    assert response.status_code == 500
    assert response.json() == {"error": "disk on fire"}


def test_health_reports_gateway(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "llm_configured": True, "model": "stub-model"}


def test_cors_allows_any_origin(client) -> None:
    response = client.options(
        "/api/get-saju",
        headers={"origin": "http://localhost:3000", "access-control-request-method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] in {"*", "http://localhost:3000"}
