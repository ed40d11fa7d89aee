import json
from pathlib import Path
from typing import Any

from foldspace.constants import SUBPROCESS_TIMEOUT
from foldspace.logging import get_logger
from foldspace.process import run_with_timeout

_logger = get_logger(__name__)


def _load_json(path: Path, default: Any) -> Any:
    try:
        return json.loads(path.read_text())
    except (OSError, json.JSONDecodeError):
        return default


def count_hooks(hooks: dict) -> dict[str, int]:
    counts: dict[str, int] = {}
    for event, entries in hooks.items():
        if not isinstance(entries, list):
            continue
        total = 0
        for entry in entries:
            nested = entry.get("hooks") if isinstance(entry, dict) else None
            total += len(nested) if isinstance(nested, list) else 1
        counts[event] = total
    return counts


def list_skills(skills_dir: Path) -> list[str]:
    if not skills_dir.is_dir():
        return []
    return sorted(p.stem for p in skills_dir.glob("*.md"))


async def read_host_config(claude_dir: Path, timeout: float = SUBPROCESS_TIMEOUT) -> dict:
    """Read-only summary of the host agent's global configuration."""
    try:
        settings = json.loads((claude_dir / "settings.json").read_text())
    except (OSError, json.JSONDecodeError) as e:
        _logger.debug("No readable settings.json in %s: %s", claude_dir, e)
        return {}
    if not isinstance(settings, dict):
        return {}

    plugins = _load_json(claude_dir / "plugins" / "installed_plugins.json", [])
    stats = _load_json(claude_dir / "stats-cache.json", {})
    if not isinstance(stats, dict):
        stats = {}

    version = await run_with_timeout(["claude", "--version"], timeout=timeout)
    hooks = settings.get("hooks")
    mcp_servers = settings.get("mcpServers")

    return {
        "settings": {
            "enabledPlugins": settings.get("enabledPlugins") or {},
            "hooks": count_hooks(hooks) if isinstance(hooks, dict) else {},
            "env": settings.get("env") or {},
            "permissionDefaults": settings.get("skipDangerousModePermissionPrompt"),
            "mcpServers": list(mcp_servers) if isinstance(mcp_servers, dict) else [],
        },
        "plugins": plugins,
        "globalSkills": list_skills(claude_dir / "skills"),
        "stats": {
            "totalSessions": stats.get("totalSessions"),
            "totalMessages": stats.get("totalMessages"),
            "firstSessionDate": stats.get("firstSessionDate"),
            "modelUsage": stats.get("modelUsage"),
        },
        "claudeVersion": version.strip() if version else "",
    }
