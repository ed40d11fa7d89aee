import asyncio
import json
import re
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from foldspace.constants import (
    MASK_KEEP_CHARS,
    MASK_MIN_LENGTH,
    MISE_CACHE_TTL,
    SECRET_KEY_PATTERN,
    SUBPROCESS_TIMEOUT,
)
from foldspace.logging import get_logger
from foldspace.process import run_with_timeout

_logger = get_logger(__name__)

_SECRET_KEY_RE = re.compile(SECRET_KEY_PATTERN, re.IGNORECASE)

CONFIG_FILENAMES = (".mise.toml", ".mise.local.toml")


def is_secret_key(key: str) -> bool:
    return _SECRET_KEY_RE.search(key) is not None


def mask_secret(value: str) -> str:
    # Display-only masking, not a redaction guarantee
    if len(value) < MASK_MIN_LENGTH:
        return "****"
    return value[:MASK_KEEP_CHARS] + "****" + value[-MASK_KEEP_CHARS:]


def mask_env(env: dict[str, str]) -> dict[str, dict]:
    masked = {}
    for key, value in env.items():
        if key == "PATH":
            continue
        sensitive = is_secret_key(key)
        masked[key] = {"value": mask_secret(str(value)) if sensitive else value, "masked": sensitive}
    return masked


def _parse_json_object(raw: str | None) -> dict:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        _logger.debug("Ignoring malformed mise output")
        return {}
    return data if isinstance(data, dict) else {}


def read_config_files(cwds: Iterable[str]) -> dict[str, str]:
    files: dict[str, str] = {}
    for cwd in cwds:
        for filename in CONFIG_FILENAMES:
            if filename in files:
                continue
            try:
                content = (Path(cwd) / filename).read_text()
            except OSError:
                continue
            if content:
                files[filename] = content
    return files


class MiseInspector:
    """Tool-environment view from `mise`, cached for `ttl` seconds."""

    def __init__(
        self,
        cwds: Callable[[], Iterable[str]],
        timeout: float = SUBPROCESS_TIMEOUT,
        ttl: float = MISE_CACHE_TTL,
    ):
        self._cwds = cwds
        self.timeout = timeout
        self.ttl = ttl
        self._cache: tuple[dict, float] | None = None

    async def fetch(self) -> dict:
        if self._cache and time.monotonic() - self._cache[1] < self.ttl:
            return self._cache[0]

        result = await self._collect()
        self._cache = (result, time.monotonic())
        return result

    async def _collect(self) -> dict:
        version = await run_with_timeout(["mise", "--version"], timeout=self.timeout)
        if version is None:
            return {"available": False}

        tools_raw, env_raw = await asyncio.gather(
            run_with_timeout(["mise", "ls", "--json"], timeout=self.timeout),
            run_with_timeout(["mise", "env", "--json"], timeout=self.timeout),
        )

        cwds = [cwd for cwd in self._cwds() if cwd]
        cwds.append(str(Path.cwd()))

        return {
            "available": True,
            "version": version.strip(),
            "tools": _parse_json_object(tools_raw),
            "env": mask_env(_parse_json_object(env_raw)),
            "configFiles": read_config_files(dict.fromkeys(cwds)),
        }
