from fastapi import APIRouter

from foldspace.server.runtime import get_runtime
from foldspace.server.schemas import SessionEndRequest, SessionStartRequest, missing

router = APIRouter(prefix="/api", tags=["sessions"])


@router.post("/session")
async def register_session(req: SessionStartRequest):
    if not req.session_id:
        return missing("sessionId")
    state = get_runtime().state
    await state.register_session(
        req.session_id,
        cwd=req.cwd or "",
        model=req.model,
        permission_mode=req.permission_mode,
        source=req.source,
        transcript_path=req.transcript_path,
    )
    return {"ok": True}


@router.post("/session/end")
async def end_session(req: SessionEndRequest):
    if not req.session_id:
        return missing("sessionId")
    state = get_runtime().state
    await state.end_session(req.session_id, reason=req.reason, transcript_path=req.transcript_path)
    return {"ok": True}


@router.get("/sessions")
async def list_sessions():
    state = get_runtime().state
    return [s.to_wire() for s in state.list_sessions()]


@router.get("/stats")
async def get_stats(session: str | None = None):
    if not session:
        return missing("session")
    state = get_runtime().state
    stats = await state.session_stats(session)
    return stats.to_wire() if stats else {}
