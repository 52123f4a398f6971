import json

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from softphone.ai_flows import (
    OPENAI_URL,
    EvaluateAgentPerformanceInput,
    evaluate_agent_performance,
    evaluate_agent_performance_action,
    generate_summary_action,
)
from softphone.backend import BackendClient
from softphone.server import create_app


def completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": json.dumps(content)}}]})


@pytest.fixture(autouse=True)
def openai_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("OPENAI_MODEL", raising=False)


CALLS = [
    {"id": "CA1", "direction": "outgoing", "status": "completed", "duration": 240,
     "notes": "Interested, demo booked", "summary": "Demo next week"},
]


class TestSummary:
    @respx.mock
    @pytest.mark.asyncio
    async def test_summary(self):
        route = respx.post(OPENAI_URL).mock(return_value=completion({"summary": "Booked a demo."}))
        assert await generate_summary_action("Long notes") == {"summary": "Booked a demo."}
        sent = json.loads(route.calls[0].request.content)
        assert sent["model"] == "gpt-4o-mini"
        assert sent["response_format"] == {"type": "json_object"}
        assert "Long notes" in sent["messages"][1]["content"]
        assert route.calls[0].request.headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_empty_notes_rejected(self):
        assert await generate_summary_action("   ") == {"error": "Notes/transcript cannot be empty."}

    @respx.mock
    @pytest.mark.asyncio
    async def test_model_failure(self):
        respx.post(OPENAI_URL).mock(return_value=httpx.Response(500))
        assert await generate_summary_action("notes") == {"error": "Failed to generate summary. Please try again."}

    @respx.mock
    @pytest.mark.asyncio
    async def test_invalid_output(self):
        respx.post(OPENAI_URL).mock(return_value=completion({"text": "wrong key"}))
        assert "error" in await generate_summary_action("notes")

    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY")
        assert "error" in await generate_summary_action("notes")


class TestEvaluation:
    @pytest.mark.asyncio
    async def test_no_calls_short_circuits(self):
        with respx.mock(assert_all_called=False) as mock:
            output = await evaluate_agent_performance(EvaluateAgentPerformanceInput(agent_name="Amit"))
            assert mock.calls.call_count == 0
        assert output.score == 0
        assert "No call data available for Amit" in output.evaluation

    @respx.mock
    @pytest.mark.asyncio
    async def test_evaluation(self, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4o")
        route = respx.post(OPENAI_URL).mock(
            return_value=completion({"score": 8, "evaluation": "## Strengths\n- Closes demos"})
        )
        result = await evaluate_agent_performance_action("Amit", CALLS)
        assert result == {"evaluation": "## Strengths\n- Closes demos", "score": 8}
        sent = json.loads(route.calls[0].request.content)
        assert sent["model"] == "gpt-4o"
        assert "'Amit'" in sent["messages"][0]["content"]
        assert "demo booked" in sent["messages"][1]["content"]

    @respx.mock
    @pytest.mark.asyncio
    async def test_score_out_of_range(self):
        respx.post(OPENAI_URL).mock(return_value=completion({"score": 42, "evaluation": "?"}))
        assert "error" in await evaluate_agent_performance_action("Amit", CALLS)


class TestRoutes:
    @respx.mock
    def test_summarize_route(self):
        respx.post(OPENAI_URL).mock(return_value=completion({"summary": "Short."}))
        client = TestClient(create_app(backend=BackendClient("")))
        assert client.post("/api/ai/summarize", json={"notes": "n"}).json() == {"summary": "Short."}

    def test_evaluate_route_without_calls(self):
        client = TestClient(create_app(backend=BackendClient("")))
        resp = client.post("/api/ai/evaluate", json={"agentName": "Amit", "calls": []})
        assert resp.json()["score"] == 0
