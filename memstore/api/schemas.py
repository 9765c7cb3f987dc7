"""
Pydantic schemas for FastAPI endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from memstore.memory.schemas import Message, MessageMetadata


class MessageIn(BaseModel):
    """Message as submitted by clients; ids and sequence are assigned on write."""

    role: str = Field(..., min_length=1, description="Speaker role, e.g. 'human', 'ai'")
    content: str = Field(..., description="Message text")
    token_count: int = Field(0, ge=0, description="Token count; estimated when 0")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Initial metadata (no 'system' keys)")

    def to_message(self) -> Message:
        return Message(
            role=self.role,
            content=self.content,
            token_count=self.token_count,
            metadata=self.metadata,
        )


class AddMemoryRequest(BaseModel):
    """Request to append messages to a session."""

    messages: List[MessageIn] = Field(..., description="Messages in chronological order")

    class Config:
        json_schema_extra = {
            "example": {
                "messages": [
                    {"role": "human", "content": "Which optimizer should I use?"},
                    {"role": "ai", "content": "AdamW with a cosine schedule is a good default."},
                ]
            }
        }


class AddMemoryResponse(BaseModel):
    """Response after appending messages."""

    ok: bool = Field(True, description="Whether the batch was committed")
    uuids: List[str] = Field(default_factory=list, description="Committed message ids, in order")


class UpdateMetadataRequest(BaseModel):
    """Request to create, overwrite or delete (value null) metadata keys."""

    metadata: List[MessageMetadata] = Field(..., description="Metadata mutations")


class DeleteSessionResponse(BaseModel):
    """Response after deleting a session."""

    deleted: bool = Field(..., description="Whether a live session was deleted")
    message: str = Field(..., description="Status message")


class HealthResponse(BaseModel):
    """Response model for /healthz endpoint."""

    status: str = Field(..., description="Service status")
    extractors: List[str] = Field(default_factory=list, description="Attached extractors")
