from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SessionStartRequest(_Request):
    session_id: str | None = None
    cwd: str | None = None
    model: str | None = None
    permission_mode: str | None = None
    source: str | None = None
    transcript_path: str | None = None


class SessionEndRequest(_Request):
    session_id: str | None = None
    reason: str | None = None
    transcript_path: str | None = None


class ResponseRequest(_Request):
    session_id: str | None = None
    role: str | None = None
    content: str | None = None


class AnnotateRequest(_Request):
    session_id: str | None = None
    response_id: str | None = None
    selected_text: str | None = None
    comment: str | None = None


class DrainRequest(_Request):
    session_id: str | None = None


class DeleteAnnotationRequest(_Request):
    id: str | None = None


def missing(field: str) -> JSONResponse:
    return JSONResponse({"ok": False, "error": f"missing {field}"}, status_code=400)
