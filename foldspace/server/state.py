import asyncio
from functools import partial
from pathlib import Path

from foldspace.config import Config
from foldspace.constants import RESUME_SOURCE
from foldspace.events import (
    AnnotationAddedEvent,
    InitEvent,
    NewResponseEvent,
    RepoStatusEvent,
    SessionEndedEvent,
    SessionStartedEvent,
    StatsUpdatedEvent,
)
from foldspace.git import GitClient
from foldspace.hub import BroadcastHub
from foldspace.logging import get_logger
from foldspace.models import Annotation, ConversationSession, RepoStatus, ResponseEntry, TranscriptStats
from foldspace.poller import RepoStatusPoller
from foldspace.transcript import TranscriptStatsCache, derive_transcript_path, read_transcript_stats
from foldspace.utils import generate_id, ms_now

_logger = get_logger(__name__)

UNKNOWN_SESSION = "unknown"


class ConsoleState:
    """Single owner of sessions, response ledgers and annotation queues.

    Every mutation goes through these methods. None of them awaits between
    reading and writing a table, so on one event loop each is atomic with
    respect to the others.
    """

    def __init__(self, config: Config, hub: BroadcastHub, git: GitClient | None = None):
        self.config = config
        self.hub = hub
        self.git = git or GitClient(timeout=config.subprocess_timeout)
        self.poller = RepoStatusPoller(self.git, self._on_repo_status, interval=config.repo_poll_interval)
        self.stats = TranscriptStatsCache(
            ttl=config.stats_cache_ttl,
            reader=partial(read_transcript_stats, timeout=config.subprocess_timeout),
        )
        self._sessions: dict[str, ConversationSession] = {}
        self._responses: dict[str, list[ResponseEntry]] = {}
        self._annotations: dict[str, list[Annotation]] = {}
        self._ended: set[str] = set()
        self._issued_ids: set[str] = set()

    def _new_id(self) -> str:
        while (new_id := generate_id()) in self._issued_ids:
            continue
        self._issued_ids.add(new_id)
        return new_id

    def _ensure_session(self, session_id: str) -> None:
        self._responses.setdefault(session_id, [])
        self._annotations.setdefault(session_id, [])

    def _touch(self, session_id: str, at: int | None = None) -> ConversationSession | None:
        meta = self._sessions.get(session_id)
        if meta:
            meta.last_activity = at or ms_now()
        return meta

    # --- Sessions ---

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: str) -> ConversationSession | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[ConversationSession]:
        return sorted(self._sessions.values(), key=lambda s: s.last_activity, reverse=True)

    def transcript_path_for(self, session_id: str, cwd: str, transcript_path: str | None) -> Path | None:
        if transcript_path:
            return Path(transcript_path).expanduser()
        if cwd:
            return derive_transcript_path(self.config.projects_dir, cwd, session_id)
        return None

    async def register_session(
        self,
        session_id: str,
        cwd: str = "",
        model: str | None = None,
        permission_mode: str | None = None,
        source: str | None = None,
        transcript_path: str | None = None,
    ) -> ConversationSession:
        now = ms_now()
        path = self.transcript_path_for(session_id, cwd, transcript_path)

        info, root = await asyncio.gather(self.git.info(cwd or "."), self.poller.resolve_root(cwd))

        meta = ConversationSession(
            session_id=session_id,
            cwd=cwd,
            model=model or "unknown",
            permission_mode=permission_mode or "default",
            source=source,
            started_at=now,
            last_activity=now,
            git_branch=info.branch,
            git_remote=info.remote,
            git_repo=info.repo,
            transcript_path=str(path) if path else None,
            repo_root=root,
        )

        if source == RESUME_SOURCE and path:
            self.stats.invalidate(session_id)
            stats = await self._rescan(session_id, path)
            if stats:
                meta.apply_stats(stats)

        previous = self._sessions.get(session_id)
        if previous and previous.repo_root and previous.repo_root != root:
            self.poller.release(previous.repo_root, session_id)

        if root:
            meta.repo_status = self.poller.cached_status(root)
        self._sessions[session_id] = meta
        self._ended.discard(session_id)
        self._ensure_session(session_id)

        _logger.info("Session %s registered (cwd=%s, source=%s)", session_id, cwd or "-", source or "-")
        self.hub.broadcast(SessionStartedEvent(session=meta))

        if root:
            await self.poller.watch(root, session_id)
        return meta

    async def end_session(
        self,
        session_id: str,
        reason: str | None = None,
        transcript_path: str | None = None,
    ) -> ConversationSession | None:
        meta = self._sessions.get(session_id)
        if meta:
            path = self.transcript_path_for(session_id, meta.cwd, transcript_path or meta.transcript_path)
            if path:
                self.stats.invalidate(session_id)
                stats = await self._rescan(session_id, path)
                if stats:
                    meta.apply_stats(stats)

        self._ended.add(session_id)
        _logger.info("Session %s ended (%s)", session_id, reason or "unknown")
        self.hub.broadcast(SessionEndedEvent(session_id=session_id, reason=reason))

        if meta and meta.repo_root:
            self.poller.release(meta.repo_root, session_id)
        return meta

    async def _rescan(self, session_id: str, path: Path) -> TranscriptStats | None:
        # A log that does not exist yet says nothing about the session
        if not path.is_file():
            return None
        return await self.stats.get(session_id, path)

    async def session_stats(self, session_id: str) -> TranscriptStats | None:
        meta = self._sessions.get(session_id)
        if not meta or not meta.transcript_path:
            return None
        return await self._rescan(session_id, Path(meta.transcript_path))

    async def refresh_stats(self) -> int:
        """Re-scan every live session's log; broadcast only real changes."""
        updated = 0
        for meta in list(self._sessions.values()):
            if meta.session_id in self._ended or not meta.transcript_path:
                continue
            stats = await self._rescan(meta.session_id, Path(meta.transcript_path))
            if stats is None or not meta.stats_differ(stats):
                continue
            meta.apply_stats(stats)
            self.hub.broadcast(StatsUpdatedEvent(session=meta))
            updated += 1
        return updated

    def _on_repo_status(self, root: str, status: RepoStatus) -> None:
        for meta in self._sessions.values():
            if meta.repo_root != root or meta.session_id in self._ended:
                continue
            meta.repo_status = status
            if status.branch:
                meta.git_branch = status.branch
            self.hub.broadcast(RepoStatusEvent(session_id=meta.session_id, status=status))

    # --- Response ledger ---

    def append_response(self, session_id: str | None, role: str | None, content: str | None) -> ResponseEntry | None:
        if not content:
            return None
        sid = session_id or UNKNOWN_SESSION
        self._ensure_session(sid)

        entry = ResponseEntry(
            id=self._new_id(),
            session_id=sid,
            timestamp=ms_now(),
            role=role or "assistant",
            content=content,
        )
        self._responses[sid].append(entry)

        meta = self._touch(sid, entry.timestamp)
        if meta:
            meta.turn_count += 1

        self.hub.broadcast(NewResponseEvent(entry=entry))
        return entry

    def list_responses(self, session_id: str | None = None) -> list[ResponseEntry]:
        if session_id is not None:
            return list(self._responses.get(session_id, []))
        merged = [entry for entries in self._responses.values() for entry in entries]
        return sorted(merged, key=lambda e: e.timestamp)

    # --- Annotation queue ---

    def add_annotation(
        self,
        session_id: str | None,
        response_id: str | None,
        selected_text: str | None,
        comment: str | None,
    ) -> Annotation:
        sid = session_id or UNKNOWN_SESSION
        self._ensure_session(sid)

        annotation = Annotation(
            id=self._new_id(),
            session_id=sid,
            response_id=response_id,
            selected_text=selected_text or "",
            comment=comment or "",
            timestamp=ms_now(),
        )
        self._annotations[sid].append(annotation)
        self._touch(sid, annotation.timestamp)

        self.hub.broadcast(AnnotationAddedEvent(annotation=annotation))
        return annotation

    def list_annotations(self, session_id: str | None = None) -> list[Annotation]:
        if session_id is not None:
            return list(self._annotations.get(session_id, []))
        return [a for pending in self._annotations.values() for a in pending]

    def drain_annotations(self, session_id: str) -> list[Annotation]:
        """Take everything pending for a session. Each annotation is handed out once."""
        pending = self._annotations.get(session_id)
        if not pending:
            return []
        self._annotations[session_id] = []
        self._touch(session_id)
        _logger.debug("Drained %d annotation(s) for %s", len(pending), session_id)
        return pending

    def clear_annotations(self, session_id: str | None = None) -> int:
        if session_id is not None:
            return len(self.drain_annotations(session_id))
        return sum(len(self.drain_annotations(sid)) for sid in list(self._annotations))

    def delete_annotation(self, annotation_id: str) -> bool:
        for pending in self._annotations.values():
            for i, annotation in enumerate(pending):
                if annotation.id == annotation_id:
                    del pending[i]
                    return True
        return False

    # --- Observers ---

    def snapshot(self) -> InitEvent:
        return InitEvent(
            sessions=list(self._sessions.values()),
            responses={sid: list(entries) for sid, entries in self._responses.items()},
            annotations={sid: list(pending) for sid, pending in self._annotations.items()},
        )

    async def close(self) -> None:
        await self.poller.stop()
