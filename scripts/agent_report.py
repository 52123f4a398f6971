#!/usr/bin/env python3
"""Evaluate an agent's recent calls and optionally grade them.

Usage:
    python scripts/agent_report.py 104                 # report for agent 104
    python scripts/agent_report.py 104 --grade         # also submit the score
    python scripts/agent_report.py 104 --limit 20      # only the 20 newest calls
    python scripts/agent_report.py 104 --raw           # raw JSON output
"""

import argparse
import asyncio
import json
import os
import sys

from dotenv import load_dotenv

from softphone.ai_flows import evaluate_agent_performance_action
from softphone.backend import BackendClient
from softphone.errors import SoftphoneError
from softphone.formatting import format_duration


def calls_for_evaluation(logs: list[dict], limit: int | None = None) -> list[dict]:
    """Reduce call-log records to the fields the evaluation reads, newest first."""
    ordered = sorted(logs, key=lambda log: str(log.get("start_time") or ""), reverse=True)
    if limit:
        ordered = ordered[:limit]
    calls = []
    for log in ordered:
        call_id = log.get("call_sid") or log.get("id")
        if not call_id:
            continue
        calls.append({
            "id": str(call_id),
            "direction": log.get("direction") or "outgoing",
            "status": log.get("status") or "completed",
            "duration": log.get("duration"),
            "notes": log.get("notes") or "",
            "summary": log.get("summary") or "",
        })
    return calls


def format_report(agent_id: str, calls: list[dict], result: dict) -> str:
    lines = [f"Agent {agent_id} | {len(calls)} calls"]
    lines.append("═" * 55)

    statuses: dict[str, int] = {}
    total = 0
    for call in calls:
        statuses[call["status"]] = statuses.get(call["status"], 0) + 1
        total += call.get("duration") or 0
    if calls:
        breakdown = ", ".join(f"{s}: {n}" for s, n in sorted(statuses.items()))
        lines.append(f"Outcomes: {breakdown}")
        lines.append(f"Talk time: {format_duration(total)} (avg {format_duration(total / len(calls))})")
    lines.append("")

    if result.get("error"):
        lines.append(f"Evaluation failed: {result['error']}")
        return "\n".join(lines)

    lines.append(f"Score: {result.get('score')}/10")
    lines.append("")
    lines.append(result.get("evaluation", ""))
    return "\n".join(lines)


async def run(args) -> int:
    backend = BackendClient(os.getenv("BASE_URL", ""))
    try:
        data = await backend.list_call_logs(args.agent_id)
        logs = data.get("call_logs", []) if isinstance(data, dict) else (data or [])
        calls = calls_for_evaluation(logs, args.limit)
        result = await evaluate_agent_performance_action(args.name or f"Agent {args.agent_id}", calls)

        if args.raw:
            print(json.dumps({"agent_id": args.agent_id, "calls": len(calls), **result}, indent=2))
        else:
            print(format_report(args.agent_id, calls, result))

        if result.get("error"):
            return 1
        if args.grade and calls:
            graded = await backend.grade_agent(args.agent_id, result["score"])
            print(f"Graded agent {graded['agent_id']}: {graded['score_given']}", file=sys.stderr)
    except SoftphoneError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await backend.close()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Evaluate an agent's recent calls")
    parser.add_argument("agent_id", help="Backend agent id")
    parser.add_argument("--name", type=str, default=None, help="Agent name used in the report prompt")
    parser.add_argument("--limit", type=int, default=None, help="Only evaluate the N newest calls")
    parser.add_argument("--grade", action="store_true", help="Submit the score to the backend")
    parser.add_argument("--raw", action="store_true", help="Output raw JSON")
    args = parser.parse_args()

    load_dotenv()
    if not os.getenv("BASE_URL"):
        print("Error: BASE_URL is not set", file=sys.stderr)
        sys.exit(1)

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
