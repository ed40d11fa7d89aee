import asyncio
import json
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, PlainTextResponse

from foldspace import __version__
from foldspace.events import PongEvent
from foldspace.hub import Observer
from foldspace.logging import configure_logging, get_logger
from foldspace.server.routers.annotations import router as annotations_router
from foldspace.server.routers.host import router as host_router
from foldspace.server.routers.responses import router as responses_router
from foldspace.server.routers.sessions import router as sessions_router
from foldspace.server.runtime import get_runtime, get_runtime_async, reset_runtime

_logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    runtime = await get_runtime_async()
    configure_logging(runtime.config.log_level)
    _logger.info("Foldspace Console on http://%s:%d", runtime.config.host, runtime.config.port)
    yield
    await reset_runtime()


app = FastAPI(
    title="foldspace",
    description="Foldspace Console - local coordination server for agent sessions",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions_router)
app.include_router(responses_router)
app.include_router(annotations_router)
app.include_router(host_router)


@app.get("/api/health")
async def health():
    return get_runtime().health()


def _is_ping(raw: str) -> bool:
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        return False
    return isinstance(message, dict) and message.get("type") == "ping"


async def _pump(websocket: WebSocket, observer: Observer) -> None:
    while (message := await observer.next_message()) is not None:
        try:
            await websocket.send_text(message)
        except (WebSocketDisconnect, RuntimeError):
            break
    # Dropped by the hub or the peer went away
    with suppress(RuntimeError, WebSocketDisconnect):
        await websocket.close()


@app.websocket("/ws")
async def observer_socket(websocket: WebSocket):
    runtime = get_runtime()
    await websocket.accept()
    observer = runtime.hub.connect(runtime.state.snapshot)
    sender = asyncio.create_task(_pump(websocket, observer))
    try:
        while True:
            raw = await websocket.receive_text()
            if _is_ping(raw):
                runtime.hub.reply(observer, PongEvent())
    except (WebSocketDisconnect, RuntimeError):
        pass
    finally:
        runtime.hub.disconnect(observer)
        sender.cancel()
        with suppress(asyncio.CancelledError):
            await sender


@app.get("/{path:path}", include_in_schema=False)
async def dashboard(path: str):
    index = get_runtime().config.index_path
    if index is None or not index.is_file():
        return PlainTextResponse("SPA not found.", status_code=404)
    return FileResponse(index, media_type="text/html")
