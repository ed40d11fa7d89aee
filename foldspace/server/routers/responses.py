from fastapi import APIRouter

from foldspace.server.runtime import get_runtime
from foldspace.server.schemas import ResponseRequest

router = APIRouter(prefix="/api", tags=["responses"])


@router.post("/response")
async def append_response(req: ResponseRequest):
    state = get_runtime().state
    entry = state.append_response(req.session_id, req.role, req.content)
    return {"ok": True, "id": entry.id if entry else None}


@router.get("/responses")
async def list_responses(session: str | None = None):
    state = get_runtime().state
    return [r.to_wire() for r in state.list_responses(session or None)]
