from fastapi import APIRouter
from fastapi.responses import JSONResponse

from foldspace.server.runtime import get_runtime
from foldspace.server.schemas import AnnotateRequest, DeleteAnnotationRequest, DrainRequest, missing

router = APIRouter(prefix="/api", tags=["annotations"])


@router.post("/annotate")
async def add_annotation(req: AnnotateRequest):
    state = get_runtime().state
    annotation = state.add_annotation(req.session_id, req.response_id, req.selected_text, req.comment)
    return {"ok": True, "id": annotation.id}


@router.get("/annotations")
async def list_annotations(session: str | None = None):
    state = get_runtime().state
    return [a.to_wire() for a in state.list_annotations(session or None)]


@router.delete("/annotations")
async def clear_annotations(session: str | None = None):
    state = get_runtime().state
    return {"ok": True, "cleared": state.clear_annotations(session or None)}


@router.post("/annotations/drain")
async def drain_annotations(req: DrainRequest):
    if not req.session_id:
        return missing("sessionId")
    state = get_runtime().state
    return {"ok": True, "annotations": [a.to_wire() for a in state.drain_annotations(req.session_id)]}


@router.post("/annotations")
async def delete_annotation(req: DeleteAnnotationRequest, action: str | None = None):
    if action != "delete":
        return JSONResponse({"ok": False, "error": f"unsupported action: {action}"}, status_code=400)
    if req.id:
        get_runtime().state.delete_annotation(req.id)
    return {"ok": True}
