"""Pytest configuration and shared fixtures."""

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from vaisu.api.rate_limit import general_limiter, login_limiter
from vaisu.services.document_service import document_service
from vaisu.services.llm import openrouter_client
from vaisu.services.llm.openrouter_client import LLMResponse, OpenRouterClient
from vaisu.storage import kv_store, object_store
from vaisu.storage.kv_store import LocalKeyValueStore
from vaisu.storage.object_store import LocalObjectStore

TEST_PASSWORD = "Str0ng!Passw0rd"

LLM_ANSWERS: dict[str, Any] = {
    "tldr": "Acme Corp reports strong quarterly growth.",
    "executiveSummary": {
        "headline": "Quarterly growth",
        "keyIdeas": ["Revenue grew", "Costs fell"],
        "kpis": [{"id": "kpi-1", "label": "Revenue", "value": 120, "unit": "M"}],
        "risks": ["Supply chain"],
        "opportunities": ["New markets"],
        "callToAction": "Invest in expansion",
    },
    "entityExtraction": {
        "entities": [
            {
                "id": "e1",
                "text": "Acme Corp",
                "type": "organization",
                "importance": 0.9,
                "context": "The reporting company",
                "mentions": [{"start": 0, "end": 9}],
            },
            {
                "id": "e2",
                "text": "January 2024",
                "type": "date",
                "importance": 0.5,
                "context": "Product launch",
                "mentions": [],
            },
        ]
    },
    "relationshipDetection": {
        "relationships": [
            {"source": "e1", "target": "e2", "type": "part-of", "strength": 0.7, "evidence": "launch"}
        ]
    },
    "signalAnalysis": {"structural": 0.8, "quantitative": 0.9},
    "sectionSummary": {"summary": "Section summary", "keywords": ["growth"]},
    "vizRecommendation": {
        "recommendations": [{"type": "mind-map", "score": 0.9, "rationale": "Hierarchical"}]
    },
    "mindMapGeneration": {
        "nodes": [
            {
                "id": "root",
                "label": "Quarterly Report",
                "summary": "Overview of the quarter",
                "children": [{"label": "Revenue", "summary": "Revenue grew 20%"}],
            }
        ]
    },
    "glossary": {
        "terms": [
            {"term": "Zeta", "definition": "Last term"},
            {"term": "alpha", "definition": "First term"},
        ],
        "domain": "finance",
    },
    "argumentMapGeneration": {
        "nodes": [
            {"id": "c1", "type": "claim", "label": "Growth will continue"},
            {"id": "v1", "type": "evidence", "label": "Revenue up 20%"},
        ],
        "edges": [{"id": "a1", "source": "v1", "target": "c1", "type": "supports"}],
    },
    "uml-extraction": {
        "classes": [{"name": "User"}, {"name": "Order", "attributes": ["id"]}],
        "relationships": [{"source": "User", "target": "Order", "type": "association"}],
    },
}


class FakeLLMClient(OpenRouterClient):
    """Answers every task from a fixed table and records the calls."""

    def __init__(self, answers: dict[str, Any] = None):
        super().__init__(client=object())
        self.answers = dict(LLM_ANSWERS if answers is None else answers)
        self.calls: list[tuple[str, str]] = []

    async def call_with_fallback(self, task, prompt, retries=2):
        self.calls.append((task, prompt))
        answer = self.answers[task]
        if isinstance(answer, Exception):
            raise answer
        content = answer if isinstance(answer, str) else json.dumps(answer)
        return LLMResponse(content=content, tokens_used=10, model="test-model")


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path):
    """Point the key-value and object stores at a temporary directory."""
    kv_store.set_kv_store(LocalKeyValueStore(tmp_path / "tables"))
    object_store.set_object_store(LocalObjectStore(tmp_path / "files"))
    document_service.clear_cache()
    general_limiter.reset()
    login_limiter.reset()
    yield tmp_path
    kv_store.set_kv_store(None)
    object_store.set_object_store(None)
    document_service.clear_cache()


@pytest.fixture(autouse=True)
def fake_llm():
    """Replace the shared OpenRouter client."""
    client = FakeLLMClient()
    openrouter_client.set_openrouter_client(client)
    yield client
    openrouter_client.set_openrouter_client(None)


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    from vaisu.main import app

    return TestClient(app)


@pytest.fixture
def register_user(client):
    """Register an account and return its credentials."""

    def _register(email: str = "user@example.com", password: str = TEST_PASSWORD) -> dict:
        response = client.post(
            "/api/auth/register",
            json={"email": email, "firstName": "Test", "lastName": "User", "password": password},
        )
        assert response.status_code == 201, response.text
        return {"userId": response.json()["userId"], "email": email, "password": password}

    return _register


@pytest.fixture
def login(client):
    """Log in and return the login response body."""

    def _login(email: str, password: str = TEST_PASSWORD) -> dict:
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()

    return _login


@pytest.fixture
def auth_headers(register_user, login):
    """Authorization headers of a freshly registered user."""
    user = register_user()
    body = login(user["email"])
    return {"Authorization": f"Bearer {body['accessToken']}"}
