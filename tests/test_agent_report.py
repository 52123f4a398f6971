import os
import sys
from argparse import Namespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

# Add scripts to path so we can import the module
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))
from agent_report import calls_for_evaluation, format_report, run

BASE = "https://backend.example.com"

LOGS = [
    {"call_sid": "CA1", "direction": "outgoing", "status": "completed", "duration": 30,
     "start_time": "2024-05-01T10:00:00Z", "notes": "Not interested"},
    {"call_sid": "CA2", "direction": "incoming", "status": "completed", "duration": 90,
     "start_time": "2024-05-03T10:00:00Z", "notes": "Demo booked", "summary": "Demo"},
    {"status": "completed", "start_time": "2024-05-04T10:00:00Z"},
]


class TestCallsForEvaluation:
    def test_newest_first_and_skips_unidentified(self):
        calls = calls_for_evaluation(LOGS)
        assert [c["id"] for c in calls] == ["CA2", "CA1"]
        assert calls[0]["summary"] == "Demo"
        assert calls[1]["summary"] == ""

    def test_limit(self):
        assert [c["id"] for c in calls_for_evaluation(LOGS, limit=2)] == ["CA2"]


class TestFormatReport:
    def test_report(self):
        calls = calls_for_evaluation(LOGS)
        out = format_report("104", calls, {"score": 7, "evaluation": "## Strengths"})
        assert "Agent 104 | 2 calls" in out
        assert "Outcomes: completed: 2" in out
        assert "Talk time: 02:00 (avg 01:00)" in out
        assert "Score: 7/10" in out
        assert out.endswith("## Strengths")

    def test_error(self):
        out = format_report("104", [], {"error": "Failed to generate performance evaluation."})
        assert "Evaluation failed" in out


class TestRun:
    @respx.mock
    @pytest.mark.asyncio
    async def test_grades_with_score(self, monkeypatch, capsys):
        monkeypatch.setenv("BASE_URL", BASE)
        respx.get(f"{BASE}/api/v1/call_logs").mock(
            return_value=httpx.Response(200, json={"call_logs": LOGS})
        )
        grade = respx.post(f"{BASE}/api/v1/grade_agents/104").mock(
            return_value=httpx.Response(200, json={"agent_id": "104", "new_score": 7})
        )
        evaluate = AsyncMock(return_value={"score": 7, "evaluation": "Solid."})
        args = Namespace(agent_id="104", name="Amit", limit=None, grade=True, raw=False)
        with patch("agent_report.evaluate_agent_performance_action", evaluate):
            assert await run(args) == 0
        assert evaluate.await_args.args[0] == "Amit"
        assert grade.called
        assert "Score: 7/10" in capsys.readouterr().out

    @respx.mock
    @pytest.mark.asyncio
    async def test_backend_failure(self, monkeypatch, capsys):
        monkeypatch.setenv("BASE_URL", BASE)
        respx.get(f"{BASE}/api/v1/call_logs").mock(return_value=httpx.Response(500, text="down"))
        args = Namespace(agent_id="104", name=None, limit=None, grade=False, raw=False)
        assert await run(args) == 1
        assert "Failed to fetch call logs. Status: 500" in capsys.readouterr().err
