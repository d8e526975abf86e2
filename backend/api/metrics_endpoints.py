from __future__ import annotations
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
import logging

from core.auth import require_auth
from metrics import MetricsCollector
from prompts import active_set as prompts_active_set

router = APIRouter()


@router.get("/api/metrics")
async def metrics_snapshot(prefix: Optional[str] = None, token: str = Depends(require_auth)):
    try:
        snap = MetricsCollector.get_global().snapshot()
    except Exception:
        logging.exception("metrics_error")
        raise HTTPException(status_code=500, detail="metrics_error")
    if prefix:
        snap = {
            "counters": {k: v for k, v in snap["counters"].items() if k.startswith(prefix)},
            "timers": {k: v for k, v in snap["timers"].items() if k.startswith(prefix)},
        }
    snap["prompt_set"] = prompts_active_set()
    return snap
