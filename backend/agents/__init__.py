from typing import Dict, Any, Optional

from .teach_me.engine import TeachMeEngine, get_engine


class UnknownOperation(ValueError):
    pass


# Operation schema registry: minimal required keys per operation
OPERATION_SCHEMAS = {
    "start": {"required": ["note_id", "user_id"]},
    "answer": {"required": ["session_id", "user_id", "answer_text"]},
    "completion": {"required": ["session_id", "user_id"]},
    "step-start": {"required": ["note_id", "user_id"]},
    "step-answer": {"required": ["session_id", "user_id", "step_number", "answer_text"]},
}


def _validate(operation: str, payload: Dict[str, Any]) -> None:
    reqs = OPERATION_SCHEMAS[operation].get("required", [])
    missing = [k for k in reqs if k not in payload or payload.get(k) in (None, "")]
    if missing:
        raise ValueError(f"invalid payload, missing keys: {missing}")


def orchestrator_dispatch(
    operation: str,
    payload: Dict[str, Any],
    engine: Optional[TeachMeEngine] = None,
) -> Dict[str, Any]:
    """Dispatch a Teach Me operation after simple payload validation.

    Validation only enforces presence of required top-level keys; the engine
    raises TeachMeError subclasses for everything else.
    """
    if operation not in OPERATION_SCHEMAS:
        raise UnknownOperation(f"unknown operation: {operation}")

    payload = payload or {}
    # legacy clients send the step answer as user_answer
    if operation == "step-answer" and not payload.get("answer_text") and payload.get("user_answer"):
        payload = {**payload, "answer_text": payload["user_answer"]}
    _validate(operation, payload)

    engine = engine or get_engine()
    if operation == "start":
        return engine.start_session(payload["note_id"], payload["user_id"])
    if operation == "answer":
        return engine.submit_answer(payload["session_id"], payload["user_id"], payload["answer_text"])
    if operation == "completion":
        return engine.fetch_completion_summary(payload["session_id"], payload["user_id"])
    if operation == "step-start":
        return engine.start_step_session(payload["note_id"], payload["user_id"])
    return engine.submit_step_answer(
        payload["session_id"],
        payload["user_id"],
        payload["step_number"],
        payload["answer_text"],
    )


__all__ = ["OPERATION_SCHEMAS", "UnknownOperation", "orchestrator_dispatch"]
