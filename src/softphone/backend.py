import json
import logging
from typing import Any

import httpx

from softphone.config import BYPASS_HEADER
from softphone.errors import BackendError, ConfigurationError

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Backend API endpoint is not configured."


def _error_details(resp: httpx.Response) -> str:
    """Pull a readable message out of an error body (JSON or raw text)."""
    text = resp.text
    try:
        body = json.loads(text)
    except ValueError:
        return text
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or text)
    return text


class BackendClient:
    """HTTP client for the external agents/leads/call-log backend.

    Holds one shared ``httpx.AsyncClient``.  Every request carries the
    tunnel bypass header.  Non-2xx answers raise ``BackendError`` with the
    upstream status code; nothing is retried here.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        if client is not None:
            self._client = client
        else:
            self._client = httpx.AsyncClient(timeout=self.timeout)

    async def close(self):
        await self._client.aclose()

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            BYPASS_HEADER: "true",
        }

    async def _request(
        self,
        method: str,
        path: str,
        label: str,
        *,
        payload: Any = None,
        params: dict | None = None,
    ) -> Any:
        if not self.base_url:
            raise ConfigurationError(NOT_CONFIGURED)
        try:
            resp = await self._client.request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                params=params,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            logger.error("%s request failed: %s", label, e)
            raise BackendError(500, f"Failed to proxy {label} request") from e

        if resp.is_error:
            details = _error_details(resp)
            logger.error("Backend %s returned %s: %s", label, resp.status_code, details)
            raise BackendError(
                resp.status_code,
                f"Failed to {label}. Status: {resp.status_code}",
                details,
            )

        if resp.status_code == 204 or not resp.content:
            return None
        if "application/json" not in resp.headers.get("content-type", ""):
            return None
        return resp.json()

    # ── Agents ──

    async def list_agents(self) -> Any:
        return await self._request("GET", "/api/v1/agents", "fetch agents")

    async def update_agent(self, agent_id: str, fields: dict) -> Any:
        return await self._request(
            "PATCH", f"/api/v1/agents/{agent_id}", "update agent", payload=fields,
        )

    async def delete_agent(self, agent_id: str) -> Any:
        return await self._request("DELETE", f"/api/v1/agents/{agent_id}", "delete agent")

    async def grade_agent(self, agent_id: str, score: float) -> dict:
        data = await self._request(
            "POST", f"/api/v1/grade_agents/{agent_id}", "grade agent",
            payload={"score": score},
        ) or {}
        # Upstream answers {agent_id, new_score}
        return {
            "agent_id": data.get("agent_id", agent_id),
            "score_given": data.get("new_score"),
        }

    # ── Leads ──

    async def list_leads(self) -> Any:
        return await self._request("GET", "/leads", "fetch leads")

    async def favorite_leads(self, credentials: dict) -> Any:
        return await self._request(
            "POST", "/get_fav_lead", "fetch favorite leads", payload=credentials,
        )

    # ── Telephony ──

    async def get_token(self, identity: str) -> str:
        data = await self._request(
            "GET", "/api/twilio/token", "fetch token", params={"identity": identity},
        )
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise BackendError(502, "Failed to fetch token from backend", "response had no token")
        return token

    async def make_call(self, agent_id: str, to: str) -> dict:
        return await self._request(
            "POST", "/api/twilio/make_call", "initiate call",
            payload={"agent_id": str(agent_id), "to": to},
        ) or {}

    async def get_transcript(self, call_sid: str) -> Any:
        return await self._request(
            "GET", f"/api/twilio/get_transcript/{call_sid}", "fetch transcript",
        )

    # ── Call logs ──

    async def create_call_log(self, payload: dict) -> Any:
        return await self._request(
            "POST", "/api/v1/call_logs", "add or update call log", payload=payload,
        )

    async def list_call_logs(self, agent_id: str | None = None) -> Any:
        params = {"agent_id": agent_id} if agent_id else None
        return await self._request(
            "GET", "/api/v1/call_logs", "fetch call logs", params=params,
        )

    # ── Outreach ──

    async def send_voicemail(self, phone: str, script: str) -> Any:
        return await self._request(
            "POST", "/api/v1/send_voicemail", "send voicemail",
            payload={"phone": phone, "script": script},
        )

    async def send_email(self, payload: dict) -> Any:
        return await self._request(
            "POST", "/api/v1/send_email", "send email", payload=payload,
        )
