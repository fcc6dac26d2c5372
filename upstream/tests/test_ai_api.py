"""
HTTP tests for the AI proxy endpoints.
"""

import httpx
from fastapi.testclient import TestClient

from token_ledger.api import create_app
from token_ledger.config import Settings
from upstream.client import AIBackendClient


AUTH = {"Authorization": "Bearer jwt-token"}


def app_client(handler) -> TestClient:
    ai_client = AIBackendClient("http://ai.test", transport=httpx.MockTransport(handler))
    return TestClient(create_app(Settings(SEED_DEMO_DATA=False), ai_client=ai_client))


class TestAIEndpoints:
    """Tests for the proxied AI features."""

    def test_requires_authorization(self):
        client = app_client(lambda request: httpx.Response(200, json=[]))

        response = client.get("/self-intro/feedback")

        assert response.status_code == 401

    def test_list_feedback(self):
        client = app_client(lambda request: httpx.Response(
            200, json=[{"id": 1, "subject": "지원 동기", "content": "저는...", "feedback": "좋습니다."}]
        ))

        response = client.get("/self-intro/feedback", headers=AUTH)

        assert response.status_code == 200
        assert response.json()[0]["feedback"] == "좋습니다."

    def test_chat_message(self):
        client = app_client(lambda request: httpx.Response(200, json={"genera": "좋은 질문입니다."}))

        response = client.post("/messages", json={"content": "커리어 고민"}, headers=AUTH)

        assert response.status_code == 201
        body = response.json()
        assert body["content"] == "좋은 질문입니다."
        assert body["isUser"] is False
        assert body["userId"] == 1

    def test_search_requires_query(self):
        client = app_client(lambda request: httpx.Response(200, json=[]))

        response = client.get("/search-profiles", params={"query": "  "}, headers=AUTH)

        assert response.status_code == 400

    def test_contract_violation_is_bad_gateway(self):
        client = app_client(lambda request: httpx.Response(200, json={"unexpected": True}))

        response = client.post("/clone/generate", headers=AUTH)

        assert response.status_code == 502
        assert response.json()["detail"] == "AI 서버 응답 형식이 올바르지 않습니다."

    def test_backend_down_is_bad_gateway(self):
        client = app_client(lambda request: httpx.Response(503))

        response = client.get("/ex-search-profiles", params={"query": "디자이너"}, headers=AUTH)

        assert response.status_code == 502
        assert response.json()["detail"] == "AI 서버에 연결할 수 없습니다."


def test_experience_validation():
    client = app_client(lambda request: httpx.Response(200, json={}))

    response = client.post("/experiences/summary", json={"title": "", "role": "디자이너"})

    assert response.status_code == 422


def test_experience_summary_needs_no_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"title": "UX 공모전", "role": "디자이너", "summary": "최우수상"})

    client = app_client(handler)

    response = client.post("/experiences/summary", json={
        "title": "UX 공모전", "role": "디자이너", "startDate": "2023-05-01", "endDate": "2023-06-30",
    })

    assert response.status_code == 201
    assert response.json()["summary"] == "최우수상"
    assert "authorization" not in seen[0].headers
