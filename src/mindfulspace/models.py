"""
Defines the core Pydantic data models for the application.

These models serve as the formal, validated data contract between the store,
the conversation log, the accounts pillar and the HTTP surface. Entity models
carry a closed set of known fields and keep any other caller-supplied field in
``model_extra``, so payloads stay flexible without losing validation.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
TOOL_ROLE = "tool"
Role = Literal[USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE, TOOL_ROLE]

CLIENT = "client"
EXPERT = "expert"
ProfileRole = Literal[CLIENT, EXPERT]

PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
ToolCallStatus = Literal[PENDING, RUNNING, COMPLETED]
_TOOL_CALL_ORDER = {PENDING: 0, RUNNING: 1, COMPLETED: 2}

ConsultationStatus = Literal["pending", "confirmed", "completed", "cancelled"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    return utcnow().isoformat()


# --- Entities ---
class Entity(BaseModel):
    """A persisted record within a collection, uniquely identified by ``id``."""

    model_config = ConfigDict(extra="allow")

    id: str
    created_date: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        """Returns the JSON-ready form that is written to storage."""
        return self.model_dump(mode="json", exclude_unset=True)


class Exercise(Entity):
    category: Optional[str] = None
    title_en: Optional[str] = None
    title_es: Optional[str] = None
    description_en: Optional[str] = None
    description_es: Optional[str] = None
    content_en: Optional[str] = None
    content_es: Optional[str] = None
    duration: Optional[Union[int, str]] = None


class Expert(Entity):
    name: Optional[str] = None
    email: Optional[str] = None
    specialization: Optional[str] = None
    title: Optional[str] = None
    bio: Optional[str] = None
    availability: Optional[str] = None
    photo_url: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    degree: Optional[str] = None
    credentials: Optional[str] = None
    cv_url: Optional[str] = None
    average_rating: Optional[float] = None
    total_ratings: Optional[int] = None


class Consultation(Entity):
    expert_id: Optional[str] = None
    expert_name: Optional[str] = None
    specialization: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None
    meeting_link: Optional[str] = None
    status: Optional[ConsultationStatus] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    review: Optional[str] = None


class Playlist(Entity):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    spotify_url: Optional[str] = None
    cover_image: Optional[str] = None
    duration: Optional[Union[int, str]] = None


# --- Conversations ---
class ToolCall(BaseModel):
    """A tool invocation requested by the assistant.

    ``status`` only ever moves forward: pending, running, completed.
    ``results`` is opaque and may encode a logical failure of its own.
    """

    name: str
    status: ToolCallStatus = PENDING
    arguments_string: Optional[str] = None
    results: Optional[Any] = None

    def advance(self, status: str, results: Any = None) -> "ToolCall":
        if status not in _TOOL_CALL_ORDER:
            raise ValueError(f"Unknown tool call status: {status!r}")
        if _TOOL_CALL_ORDER[status] < _TOOL_CALL_ORDER[self.status]:
            raise ValueError(
                f"Tool call status cannot move from {self.status!r} to {status!r}"
            )
        self.status = status
        if results is not None:
            self.results = results
        return self


class ChatMessage(BaseModel):
    """Represents a single message within a conversation."""

    model_config = ConfigDict(extra="allow")

    role: Role
    content: Optional[Union[str, List[Dict[str, Any]]]] = None
    tool_calls: Optional[List[ToolCall]] = None
    timestamp: Optional[datetime] = None


class Conversation(BaseModel):
    """Represents a chat conversation: caller metadata plus an ordered message log."""

    id: str
    agent_name: Optional[str] = None
    metadata: Optional[Any] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    created_date: Optional[str] = None


# --- People ---
class Profile(BaseModel):
    """The locally cached profile of the signed-in user."""

    full_name: Optional[str] = None
    role: ProfileRole = CLIENT
    nickname: Optional[str] = None
    bio: Optional[str] = None


class User(BaseModel):
    """A server-side account."""

    id: str
    email: str
    full_name: Optional[str] = None
    role: ProfileRole = CLIENT
    nickname: Optional[str] = None
    bio: Optional[str] = None
    photo_url: Optional[str] = None
    provider: str = "password"
    uid: Optional[str] = None
    password_hash: Optional[str] = None
    created_date: Optional[str] = None

    def public(self) -> Dict[str, Any]:
        """The user as returned to clients, without credential material."""
        return self.model_dump(mode="json", exclude={"password_hash"})


class Identity(BaseModel):
    """The opaque record handed over by an external identity provider."""

    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    display_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("displayName", "display_name", "name"),
    )
    uid: Optional[str] = None
    photo_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("photoUrl", "photo_url")
    )
