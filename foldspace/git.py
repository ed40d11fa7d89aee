import asyncio
import re
from dataclasses import dataclass

from foldspace.constants import SUBPROCESS_TIMEOUT
from foldspace.models import RepoStatus
from foldspace.process import run_with_timeout

_REPO_SLUG_RE = re.compile(r"[:/]([^/]+/[^/.]+?)(?:\.git)?$")
_AHEAD_BEHIND_RE = re.compile(r"^\+(\d+) -(\d+)$")


@dataclass(frozen=True)
class GitInfo:
    branch: str | None = None
    remote: str | None = None
    repo: str | None = None


def parse_repo_slug(remote: str) -> str | None:
    match = _REPO_SLUG_RE.search(remote.strip())
    return match.group(1) if match else None


def parse_status(output: str) -> RepoStatus:
    """Parse `git status --porcelain=v2 --branch` output."""
    branch: str | None = None
    ahead = behind = staged = modified = untracked = conflicted = 0

    for line in output.splitlines():
        if line.startswith("# branch.head "):
            head = line.removeprefix("# branch.head ").strip()
            branch = None if head == "(detached)" else head
        elif line.startswith("# branch.ab "):
            match = _AHEAD_BEHIND_RE.match(line.removeprefix("# branch.ab ").strip())
            if match:
                ahead, behind = int(match.group(1)), int(match.group(2))
        elif line.startswith(("1 ", "2 ")):
            xy = line[2:4]
            if xy[0] != ".":
                staged += 1
            if xy[1] != ".":
                modified += 1
        elif line.startswith("u "):
            conflicted += 1
        elif line.startswith("? "):
            untracked += 1

    return RepoStatus(
        branch=branch,
        ahead=ahead,
        behind=behind,
        staged=staged,
        modified=modified,
        untracked=untracked,
        conflicted=conflicted,
    )


class GitClient:
    """Bounded git invocations. Every method returns None when git cannot answer."""

    def __init__(self, timeout: float = SUBPROCESS_TIMEOUT):
        self.timeout = timeout

    async def _git(self, cwd: str, *args: str) -> str | None:
        return await run_with_timeout(["git", "-C", cwd, *args], timeout=self.timeout)

    async def repo_root(self, cwd: str) -> str | None:
        out = await self._git(cwd, "rev-parse", "--show-toplevel")
        if out is None:
            return None
        return out.strip() or None

    async def status(self, root: str) -> RepoStatus | None:
        out = await self._git(root, "status", "--porcelain=v2", "--branch")
        if out is None:
            return None
        return parse_status(out)

    async def info(self, cwd: str) -> GitInfo:
        branch, remote = await asyncio.gather(
            self._git(cwd, "rev-parse", "--abbrev-ref", "HEAD"),
            self._git(cwd, "remote", "get-url", "origin"),
        )
        branch = branch.strip() if branch else None
        remote = remote.strip() if remote else None
        return GitInfo(
            branch=branch or None,
            remote=remote or None,
            repo=parse_repo_slug(remote) if remote else None,
        )
