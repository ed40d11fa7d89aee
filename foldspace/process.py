import asyncio
from contextlib import suppress

from foldspace.constants import SUBPROCESS_TIMEOUT
from foldspace.logging import get_logger

_logger = get_logger(__name__)


async def run_with_timeout(cmd: list[str], timeout: float = SUBPROCESS_TIMEOUT) -> str | None:
    """Run a command and return its stdout, or None on any failure.

    A non-zero exit, a missing executable and a timeout all count as
    "value unavailable". On timeout the child is killed before returning.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        _logger.debug("Cannot spawn %s: %s", cmd[0], e)
        return None

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        _logger.debug("Command timed out after %.1fs: %s", timeout, " ".join(cmd))
        await _kill(proc)
        return None
    except asyncio.CancelledError:
        await _kill(proc)
        raise

    if proc.returncode != 0:
        return None
    return stdout.decode(errors="replace")


async def _kill(proc: asyncio.subprocess.Process) -> None:
    with suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()
