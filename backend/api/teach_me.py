from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
import logging
import time

from agents import UnknownOperation, orchestrator_dispatch
from agents.teach_me.engine import TeachMeEngine, get_engine
from core.auth import require_auth
from core.errors import TeachMeError
from metrics import MetricsCollector
from prompts import active_set as prompts_active_set
from schemas.teach_me import TeachMeRequest

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/api/teach-me/{operation}")
def teach_me_endpoint(
    operation: str,
    body: TeachMeRequest,
    token: str = Depends(require_auth),
    engine: TeachMeEngine = Depends(get_engine),
):
    mc = MetricsCollector.get_global()
    t0 = time.time()
    outcome = "ok"
    try:
        payload = {k: v for k, v in body.model_dump().items() if v is not None}
        return orchestrator_dispatch(operation, payload, engine=engine)
    except TeachMeError as exc:
        outcome = exc.code
        logger.warning("teach_me_operation_failed operation=%s code=%s error=%s", operation, exc.code, exc)
        raise HTTPException(status_code=exc.http_status, detail=exc.to_payload())
    except UnknownOperation as exc:
        outcome = "unknown_operation"
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        outcome = "invalid_payload"
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception:
        outcome = "agent_error"
        logger.exception("agent_error operation=%s", operation)
        raise HTTPException(status_code=500, detail="agent_error")
    finally:
        elapsed_ms = int((time.time() - t0) * 1000)
        mc.increment("teach_me_calls_total", labels={"operation": operation, "outcome": outcome})
        mc.timing("teach_me_elapsed_ms", elapsed_ms, labels={"operation": operation})
        mc.increment("teach_me_calls_by_prompt_set", labels={"prompt_set": prompts_active_set()})
