#!/usr/bin/env python3
"""
Teach Me smoke test against a running backend.

Checks:
- Health
- Start an adaptive session for a note
- Submit one answer and show the chosen follow-up
- Metrics snapshot for teach_me_* counters

Usage:
  python3 scripts/teach_me_smoke.py --note-id <uuid> --user-id <id> [--base http://localhost:8000]

Env defaults:
  SMOKE_BASE (default: http://localhost:8000)
  SMOKE_AUTH (default: "Bearer test-token")

Notes:
- The note must exist in study_notes with a summary, key points or text.
- Keep outputs short; do not print full bodies or secrets.
"""
import argparse
import json
import os
from typing import Optional
from urllib import request, error

DEFAULT_BASE = os.environ.get("SMOKE_BASE", "http://localhost:8000")
AUTH = os.environ.get("SMOKE_AUTH", "Bearer test-token")


def http_json(method: str, url: str, body: Optional[dict] = None, timeout: float = 120.0):
    data = None
    if body is not None:
        data = json.dumps(body).encode("utf-8")
    req = request.Request(url, data=data, method=method)
    req.add_header("Authorization", AUTH)
    if body is not None:
        req.add_header("Content-Type", "application/json")
    try:
        with request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read()
            try:
                return json.loads(raw.decode("utf-8"))
            except ValueError:
                return {"_raw": raw.decode("utf-8", errors="ignore")[:240]}
    except error.HTTPError as e:
        raw = e.read().decode("utf-8", errors="ignore")
        return {"_error": f"HTTP {e.code}", "detail": raw[:240]}
    except OSError as e:
        return {"_error": str(e)}


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--base", default=DEFAULT_BASE, help="backend base URL")
    ap.add_argument("--note-id", required=True)
    ap.add_argument("--user-id", required=True)
    ap.add_argument("--answer", default="I think it has to do with energy moving from one place to another.")
    args = ap.parse_args()

    base = args.base.rstrip("/")

    print("[health] GET /health")
    print({"status": http_json("GET", f"{base}/health")})

    print("[teach-me] POST /api/teach-me/start")
    started = http_json("POST", f"{base}/api/teach-me/start", {"note_id": args.note_id, "user_id": args.user_id})
    if "_error" in started:
        print(started)
        return
    step = started.get("step_data") or {}
    print({
        "session_id": started.get("session_id"),
        "total_concepts": started.get("total_concepts"),
        "first_concept": step.get("concept_name"),
        "opening_question": step.get("opening_question"),
    })

    print("[teach-me] POST /api/teach-me/answer")
    answered = http_json(
        "POST",
        f"{base}/api/teach-me/answer",
        {"session_id": started.get("session_id"), "user_id": args.user_id, "answer_text": args.answer},
    )
    analysis = answered.get("understanding_analysis") or {}
    print({
        "turn_type": answered.get("turn_type"),
        "question_type": answered.get("question_type"),
        "level": analysis.get("level"),
        "score": analysis.get("score"),
        "next_question": (answered.get("next_question") or "")[:160],
        "error": answered.get("_error"),
    })

    print("[metrics] GET /api/metrics?prefix=teach_me")
    snap = http_json("GET", f"{base}/api/metrics?prefix=teach_me")
    print({"counters": snap.get("counters")})

    print("[done]")


if __name__ == "__main__":
    main()
