import json
import logging
import os

import httpx
from fastapi import APIRouter
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o-mini"

SUMMARY_PROMPT = """You are an AI assistant that summarizes phone calls between agents and customers.
You will be given a transcript or notes from the call. Provide a short summary that extracts the key information.
The summary should be no more than 3 sentences long.

Return ONLY valid JSON of the form {"summary": "..."}."""

EVALUATION_PROMPT = """You are an expert performance analyst for a financial services company.
Evaluate the performance of agent '{agent_name}' based on their recent call logs and give a score out of 10.

Focus on the quality of interactions and outcomes, not just the quantity of calls.
A few long 'completed' calls with positive notes are better than many failed or busy calls.

Analyze:
1. Call outcomes: distribution of 'completed', 'voicemail-dropped', 'busy', 'failed'.
2. Notes and summaries of completed calls: follow-ups scheduled, interest shown, information gathered.
3. Duration: many completed calls under 30 seconds are a red flag; long calls only count with an outcome.
4. Communication skills as far as the notes show them.

Return ONLY valid JSON with two fields:
- score: number from 1 (poor) to 10 (excellent)
- evaluation: a concise Markdown report explaining the score, with an overall summary,
  a "Strengths" section (2-3 bullets), an "Areas for Improvement" section (2-3 bullets)
  and a final "Recommendation"."""


class SummarizeCallNotesInput(BaseModel):
    notes: str = Field(..., description="The transcript or notes from the call.")


class SummarizeCallNotesOutput(BaseModel):
    summary: str = Field(..., description="A concise summary of the call.")


class CallRecord(BaseModel):
    id: str
    direction: str
    status: str
    duration: float | None = None
    notes: str | None = None
    summary: str | None = None


class EvaluateAgentPerformanceInput(BaseModel):
    agent_name: str
    calls: list[CallRecord] = Field(default_factory=list)


class EvaluateAgentPerformanceOutput(BaseModel):
    evaluation: str
    score: float = Field(..., ge=0, le=10)


async def _complete_json(system_prompt: str, user_content: str, client: httpx.AsyncClient | None = None) -> dict:
    """One chat-completions round trip in JSON mode; returns the parsed object."""
    api_key = os.getenv("OPENAI_API_KEY", "")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not configured")
    payload = {
        "model": os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
        "temperature": 0.2,
        "response_format": {"type": "json_object"},
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ],
    }
    headers = {"Authorization": f"Bearer {api_key}"}

    if client is not None:
        resp = await client.post(OPENAI_URL, headers=headers, json=payload)
    else:
        async with httpx.AsyncClient(timeout=30.0) as owned:
            resp = await owned.post(OPENAI_URL, headers=headers, json=payload)
    resp.raise_for_status()
    content = resp.json()["choices"][0]["message"]["content"]
    return json.loads(content)


async def summarize_call_notes(data: SummarizeCallNotesInput, client: httpx.AsyncClient | None = None) -> SummarizeCallNotesOutput:
    raw = await _complete_json(SUMMARY_PROMPT, f"Call Notes/Transcript: {data.notes}", client)
    return SummarizeCallNotesOutput.model_validate(raw)


async def evaluate_agent_performance(
    data: EvaluateAgentPerformanceInput, client: httpx.AsyncClient | None = None,
) -> EvaluateAgentPerformanceOutput:
    if not data.calls:
        return EvaluateAgentPerformanceOutput(
            evaluation=f"No call data available for {data.agent_name}. Unable to generate an evaluation.",
            score=0,
        )
    call_json = json.dumps([c.model_dump() for c in data.calls])
    raw = await _complete_json(
        EVALUATION_PROMPT.format(agent_name=data.agent_name),
        f"Here are the call logs for {data.agent_name} to analyze:\n{call_json}",
        client,
    )
    return EvaluateAgentPerformanceOutput.model_validate(raw)


# ── Actions: never raise, answer {result} or {error} ──

async def generate_summary_action(notes: str, client: httpx.AsyncClient | None = None) -> dict:
    if not notes or not notes.strip():
        return {"error": "Notes/transcript cannot be empty."}
    try:
        output = await summarize_call_notes(SummarizeCallNotesInput(notes=notes), client)
    except (httpx.HTTPError, RuntimeError, ValueError, KeyError, ValidationError) as e:
        logger.error("Summary generation failed: %s", e)
        return {"error": "Failed to generate summary. Please try again."}
    return {"summary": output.summary}


async def evaluate_agent_performance_action(
    agent_name: str, calls: list[dict], client: httpx.AsyncClient | None = None,
) -> dict:
    try:
        data = EvaluateAgentPerformanceInput(agent_name=agent_name, calls=calls or [])
        output = await evaluate_agent_performance(data, client)
    except (httpx.HTTPError, RuntimeError, ValueError, KeyError, ValidationError) as e:
        logger.error("Performance evaluation for %s failed: %s", agent_name, e)
        return {"error": "Failed to generate performance evaluation. Please try again."}
    return {"evaluation": output.evaluation, "score": output.score}


router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/summarize")
async def summarize(body: dict):
    return await generate_summary_action(str(body.get("notes") or ""))


@router.post("/evaluate")
async def evaluate(body: dict):
    return await evaluate_agent_performance_action(
        str(body.get("agent_name") or body.get("agentName") or ""),
        body.get("calls") or [],
    )
