from fastapi import APIRouter

from foldspace.host.claude import read_host_config
from foldspace.server.runtime import get_runtime

router = APIRouter(prefix="/api", tags=["host"])


@router.get("/config")
async def get_host_config():
    config = get_runtime().config
    return await read_host_config(config.claude_dir, timeout=config.subprocess_timeout)


@router.get("/mise")
async def get_mise():
    return await get_runtime().mise.fetch()
