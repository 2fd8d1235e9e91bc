"""
Data models for agentdb

Plain dataclasses for rows; pydantic models for the open JSON payloads
(memory content, knowledge content) so known fields are validated and
unknown ones survive a round trip.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ConstraintViolation, InvalidInput

UUIDLike = Union[str, uuid.UUID]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def to_id(value: UUIDLike, name: str = "id") -> str:
    """Normalize a UUID (or its string form) to the canonical string."""
    if isinstance(value, uuid.UUID):
        return str(value)
    if not value:
        raise InvalidInput(f"{name} is required")
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, AttributeError, TypeError):
        raise ConstraintViolation(f"Malformed identifier for {name}: {value!r}")


def optional_id(value: Optional[UUIDLike], name: str = "id") -> Optional[str]:
    return None if value is None else to_id(value, name)


def to_db_time(value: Optional[datetime]) -> str:
    """UTC ISO-8601 text; sortable as a string because the format is fixed."""
    value = value or utcnow()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace(" ", "T"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def dump_json(data: Any) -> str:
    """Canonical JSON: sorted keys, compact, so equal payloads are equal text."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


class Content(BaseModel):
    """Message payload. Extra keys are kept as-is."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    text: str = ""
    action: Optional[str] = None
    source: Optional[str] = None
    url: Optional[str] = None
    in_reply_to: Optional[str] = Field(default=None, alias="inReplyTo")
    attachments: Optional[List[Dict[str, Any]]] = None

    def to_json(self) -> str:
        return dump_json(self.model_dump(mode="json", by_alias=True, exclude_none=True))


class KnowledgeMetadata(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    is_main: bool = Field(default=False, alias="isMain")
    is_chunk: bool = Field(default=False, alias="isChunk")
    original_id: Optional[str] = Field(default=None, alias="originalId")
    chunk_index: Optional[int] = Field(default=None, alias="chunkIndex")
    is_shared: bool = Field(default=False, alias="isShared")
    source: Optional[str] = None
    type: Optional[str] = None


class KnowledgeContent(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    text: str = ""
    metadata: KnowledgeMetadata = Field(default_factory=KnowledgeMetadata)

    def to_json(self) -> str:
        return dump_json(self.model_dump(mode="json", by_alias=True, exclude_none=True))


def _validate(model, data: Any, what: str):
    if isinstance(data, model):
        return data
    if isinstance(data, str):
        data = {"text": data}
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        raise InvalidInput(f"Invalid {what}: {e}") from e


class GoalStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    FAILED = "FAILED"


class ParticipantState(str, Enum):
    FOLLOWED = "FOLLOWED"
    MUTED = "MUTED"


def to_goal_status(value: Union[GoalStatus, str]) -> GoalStatus:
    try:
        return GoalStatus(value)
    except ValueError:
        raise InvalidInput(f"Unknown goal status: {value!r}") from None


def to_participant_state(value: Union[ParticipantState, str]) -> ParticipantState:
    try:
        return ParticipantState(value)
    except ValueError:
        raise InvalidInput(f"Unknown participant state: {value!r}") from None


@dataclass
class Memory:
    """A message or document stored in one room for one agent."""

    id: str = field(default_factory=new_id)
    agent_id: Optional[str] = None
    room_id: Optional[str] = None
    user_id: Optional[str] = None
    content: Content = field(default_factory=Content)
    embedding: Optional[List[float]] = None
    created_at: datetime = field(default_factory=utcnow)
    unique: bool = False
    table_name: str = "messages"

    # Filled in on search results only
    similarity: Optional[float] = None

    def __post_init__(self):
        self.content = _validate(Content, self.content, "memory content")

    @property
    def text(self) -> str:
        return self.content.text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "room_id": self.room_id,
            "user_id": self.user_id,
            "content": self.content.model_dump(by_alias=True, exclude_none=True),
            "embedding": self.embedding,
            "created_at": self.created_at.isoformat(),
            "unique": self.unique,
            "table_name": self.table_name,
            "similarity": self.similarity,
        }


@dataclass
class KnowledgeItem:
    """A retrieval-augmented knowledge snippet, private to an agent or shared."""

    id: str = field(default_factory=new_id)
    agent_id: Optional[str] = None
    content: KnowledgeContent = field(default_factory=KnowledgeContent)
    embedding: Optional[List[float]] = None
    created_at: datetime = field(default_factory=utcnow)
    similarity: Optional[float] = None

    def __post_init__(self):
        self.content = _validate(KnowledgeContent, self.content, "knowledge content")

    @property
    def is_shared(self) -> bool:
        return self.content.metadata.is_shared

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "content": self.content.model_dump(mode="json", by_alias=True, exclude_none=True),
            "embedding": self.embedding,
            "created_at": self.created_at.isoformat(),
            "similarity": self.similarity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeItem":
        data = data.copy()
        if isinstance(data.get("created_at"), str):
            data["created_at"] = from_db_time(data["created_at"])
        return cls(**data)


@dataclass
class Objective:
    description: str = ""
    completed: bool = False
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"description": self.description, "completed": self.completed}
        if self.id:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Objective":
        return cls(
            description=data.get("description", ""),
            completed=bool(data.get("completed", False)),
            id=data.get("id"),
        )


@dataclass
class Goal:
    id: str = field(default_factory=new_id)
    room_id: Optional[str] = None
    user_id: Optional[str] = None
    name: str = ""
    status: GoalStatus = GoalStatus.IN_PROGRESS
    objectives: List[Objective] = field(default_factory=list)
    description: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.status = to_goal_status(self.status)
        self.objectives = [
            o if isinstance(o, Objective) else Objective.from_dict(o)
            for o in self.objectives
        ]

    def objectives_json(self) -> str:
        return dump_json([o.to_dict() for o in self.objectives])


@dataclass
class Account:
    id: str = field(default_factory=new_id)
    name: Optional[str] = None
    username: Optional[str] = None
    email: str = ""
    avatar_url: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Actor:
    """Display view of a room participant."""

    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Participant:
    id: str
    user_id: str
    room_id: str
    user_state: Optional[ParticipantState] = None
    last_message_read: Optional[str] = None
    account: Optional[Account] = None


@dataclass
class Relationship:
    """An unordered link between two users."""

    id: str = field(default_factory=new_id)
    user_a: str = ""
    user_b: str = ""
    user_id: str = ""
    status: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user_a, self.user_b)


@dataclass
class CachedEmbedding:
    """A previously stored embedding whose source text resembles the query."""

    embedding: List[float]
    levenshtein_score: float


@dataclass
class LogEntry:
    id: str
    user_id: str
    room_id: str
    type: str
    body: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
