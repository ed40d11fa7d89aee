import json
from dataclasses import dataclass, field
from enum import StrEnum

from foldspace.models import Annotation, ConversationSession, RepoStatus, ResponseEntry


class EventType(StrEnum):
    INIT = "init"
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    NEW_RESPONSE = "new_response"
    ANNOTATION_ADDED = "annotation_added"
    REPO_STATUS = "repo_status"
    STATS_UPDATED = "stats_updated"
    PONG = "pong"


@dataclass(frozen=True)
class ObserverEvent:
    type: EventType

    def payload(self) -> dict | None:
        return None

    def to_message(self) -> dict:
        message: dict = {"type": self.type.value}
        data = self.payload()
        if data is not None:
            message["data"] = data
        return message

    def to_json(self) -> str:
        return json.dumps(self.to_message())


@dataclass(frozen=True)
class InitEvent(ObserverEvent):
    type: EventType = field(default=EventType.INIT, init=False)
    sessions: list[ConversationSession] = field(default_factory=list)
    responses: dict[str, list[ResponseEntry]] = field(default_factory=dict)
    annotations: dict[str, list[Annotation]] = field(default_factory=dict)

    def payload(self) -> dict:
        return {
            "sessions": [s.to_wire() for s in self.sessions],
            "responses": {sid: [r.to_wire() for r in entries] for sid, entries in self.responses.items()},
            "annotations": {sid: [a.to_wire() for a in pending] for sid, pending in self.annotations.items()},
        }


@dataclass(frozen=True)
class SessionStartedEvent(ObserverEvent):
    type: EventType = field(default=EventType.SESSION_STARTED, init=False)
    session: ConversationSession

    def payload(self) -> dict:
        return self.session.to_wire()


@dataclass(frozen=True)
class SessionEndedEvent(ObserverEvent):
    type: EventType = field(default=EventType.SESSION_ENDED, init=False)
    session_id: str
    reason: str | None = None

    def payload(self) -> dict:
        return {"sessionId": self.session_id, "reason": self.reason}


@dataclass(frozen=True)
class NewResponseEvent(ObserverEvent):
    type: EventType = field(default=EventType.NEW_RESPONSE, init=False)
    entry: ResponseEntry

    def payload(self) -> dict:
        return self.entry.to_wire()


@dataclass(frozen=True)
class AnnotationAddedEvent(ObserverEvent):
    type: EventType = field(default=EventType.ANNOTATION_ADDED, init=False)
    annotation: Annotation

    def payload(self) -> dict:
        return self.annotation.to_wire()


@dataclass(frozen=True)
class RepoStatusEvent(ObserverEvent):
    type: EventType = field(default=EventType.REPO_STATUS, init=False)
    session_id: str
    status: RepoStatus

    def payload(self) -> dict:
        return {"sessionId": self.session_id, "status": self.status.to_wire()}


@dataclass(frozen=True)
class StatsUpdatedEvent(ObserverEvent):
    type: EventType = field(default=EventType.STATS_UPDATED, init=False)
    session: ConversationSession

    def payload(self) -> dict:
        return self.session.to_wire()


@dataclass(frozen=True)
class PongEvent(ObserverEvent):
    type: EventType = field(default=EventType.PONG, init=False)
