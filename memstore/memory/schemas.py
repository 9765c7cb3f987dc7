"""
Memory store data models.

Defines sessions, messages, summaries, metadata, embeddings and the
payloads exchanged with extractors and search callers.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
import time
import uuid


def new_uuid() -> str:
    """Generate a message/summary identifier."""
    return str(uuid.uuid4())


class Session(BaseModel):
    """
    A conversation identified by a stable id.

    Deleting a session is a soft delete. Writing to the same id afterwards
    opens a new generation instead of resurrecting the deleted rows.
    """

    session_id: str = Field(..., description="Stable session identifier")
    generation: int = Field(1, description="Incremented each time the id is reused after deletion")
    created_at: float = Field(default_factory=time.time, description="Unix timestamp")
    deleted: bool = Field(False, description="Soft-delete flag")


class Message(BaseModel):
    """
    One turn in a conversation.

    Content is immutable once written; only the deleted flag and the
    attached metadata change afterwards. `sequence` is assigned by the
    backend on commit.
    """

    uuid: str = Field(default_factory=new_uuid, description="Unique message id")
    session_id: str = Field("", description="Owning session id (set on write)")
    role: str = Field(..., description="Speaker role, e.g. 'human', 'ai', 'system'")
    content: str = Field(..., description="Message text")
    token_count: int = Field(0, description="Token count (estimated on write when 0)")
    created_at: float = Field(default_factory=time.time, description="Unix timestamp")
    sequence: int = Field(0, description="Per-session sequence number, assigned on commit")
    deleted: bool = Field(False, description="Soft-delete flag")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Metadata snapshot")

    class Config:
        json_schema_extra = {
            "example": {
                "role": "human",
                "content": "Which optimizer did we settle on?",
                "metadata": {"channel": "web"},
            }
        }


class Summary(BaseModel):
    """
    Condensed history of a session up to a boundary message.

    `summary_point_uuid` is the last message folded into this summary. It
    stays resolvable after that message is soft-deleted.
    """

    uuid: str = Field(default_factory=new_uuid, description="Unique summary id")
    session_id: str = Field("", description="Owning session id (set on write)")
    content: str = Field(..., description="Summary text")
    token_count: int = Field(0, description="Token count (estimated on write when 0)")
    created_at: float = Field(default_factory=time.time, description="Unix timestamp")
    summary_point_uuid: str = Field(..., description="Boundary message uuid")


class MessageMetadata(BaseModel):
    """
    One keyed metadata mutation for one message.

    A `value` of None deletes the key.
    """

    message_uuid: str = Field(..., description="Target message")
    key: str = Field(..., min_length=1, description="Metadata key")
    value: Optional[Any] = Field(None, description="New value; None deletes the key")


class Embedding(BaseModel):
    """Vector for one message under one embedding model."""

    message_uuid: str = Field(..., description="Target message")
    model: str = Field(..., description="Embedding model identifier")
    vector: List[float] = Field(..., description="Embedding vector")


class Memory(BaseModel):
    """Result of a memory read: newest summary plus selected messages."""

    summary: Optional[Summary] = Field(None, description="Most recent summary, if any")
    messages: List[Message] = Field(default_factory=list, description="Messages in chronological order")

    def is_empty(self) -> bool:
        return self.summary is None and not self.messages


class MessageEvent(BaseModel):
    """Payload delivered to extractors after a batch of messages commits."""

    session_id: str = Field(..., description="Session the batch was written to")
    messages: List[Message] = Field(default_factory=list, description="Committed messages, in order")
    timestamp: float = Field(default_factory=time.time, description="Commit time")


class SearchPayload(BaseModel):
    """Search query: free text plus an optional exact-match metadata filter."""

    text: str = Field("", description="Query text")
    meta: Optional[Dict[str, Any]] = Field(None, description="Exact-match metadata filter")

    class Config:
        json_schema_extra = {
            "example": {
                "text": "learning rate schedule",
                "meta": {"channel": "web"},
            }
        }


class SearchResult(BaseModel):
    """A scored message. Lower `dist` means more similar."""

    message: Message = Field(..., description="Matched message")
    summary: Optional[Summary] = Field(None, description="Reserved for summary hits")
    meta: Optional[Dict[str, Any]] = Field(None, description="Metadata snapshot")
    dist: float = Field(..., description="Distance score, lower is closer")
