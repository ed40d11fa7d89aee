from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    """Snake-case in Python, camelCase on the wire (hooks and dashboard speak camelCase)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class _FrozenModel(_WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class RepoStatus(_FrozenModel):
    branch: str | None = None
    ahead: int = 0
    behind: int = 0
    staged: int = 0
    modified: int = 0
    untracked: int = 0
    conflicted: int = 0


class TranscriptStats(_FrozenModel):
    total_tokens_in: int = 0
    total_tokens_out: int = 0
    turn_count: int = 0
    model: str | None = None
    claude_version: str | None = None
    git_branch: str | None = None


class ResponseEntry(_FrozenModel):
    id: str
    session_id: str
    timestamp: int
    role: str
    content: str


class Annotation(_FrozenModel):
    id: str
    session_id: str
    response_id: str | None = None
    selected_text: str = ""
    comment: str = ""
    timestamp: int


class ConversationSession(_WireModel):
    session_id: str
    cwd: str = ""
    model: str = "unknown"
    permission_mode: str = "default"
    source: str | None = None
    started_at: int
    last_activity: int
    total_tokens_in: int = 0
    total_tokens_out: int = 0
    turn_count: int = 0
    claude_version: str | None = None
    git_branch: str | None = None
    git_remote: str | None = None
    git_repo: str | None = None
    transcript_path: str | None = None
    repo_root: str | None = None
    repo_status: RepoStatus | None = None

    def apply_stats(self, stats: TranscriptStats) -> None:
        self.total_tokens_in = stats.total_tokens_in
        self.total_tokens_out = stats.total_tokens_out
        self.turn_count = stats.turn_count
        if stats.claude_version:
            self.claude_version = stats.claude_version
        if stats.model:
            self.model = stats.model
        if stats.git_branch:
            self.git_branch = stats.git_branch

    def stats_differ(self, stats: TranscriptStats) -> bool:
        return (
            self.total_tokens_in != stats.total_tokens_in
            or self.total_tokens_out != stats.total_tokens_out
            or self.turn_count != stats.turn_count
            or (stats.claude_version is not None and stats.claude_version != self.claude_version)
            or (stats.model is not None and stats.model != self.model)
            or (stats.git_branch is not None and stats.git_branch != self.git_branch)
        )
