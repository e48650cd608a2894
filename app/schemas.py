"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming payloads
- Record models returned by the Storage Gateway and serialized by the API
- Response models for health and error bodies

Request models only enforce types. Whether a mutation is admissible is
decided by the domain services.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# Integer columns are signed 64-bit in the store
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


# =============================================================================
# Pydantic Request Models
# =============================================================================

class AccountRequest(BaseModel):
    """Body of POST /register and POST /login."""
    username: Optional[str] = Field(None, description="Unique account name")
    password: Optional[str] = Field(None, description="Plaintext password (min 4 characters)")

    model_config = {
        "json_schema_extra": {
            "examples": [{"username": "alice", "password": "good"}]
        }
    }


class MessageRequest(BaseModel):
    """Body of POST /messages."""
    posted_by: int = Field(..., ge=INT64_MIN, le=INT64_MAX, description="account_id of the author")
    message_text: Optional[str] = Field(None, description="Message content, 1-255 characters")
    time_posted_epoch: int = Field(
        0,
        ge=INT64_MIN,
        le=INT64_MAX,
        description="Caller-supplied epoch timestamp, 0 when omitted"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [{"posted_by": 1, "message_text": "hi", "time_posted_epoch": 1000}]
        }
    }


class MessageUpdateRequest(BaseModel):
    """Body of PATCH /messages/{message_id}. Only message_text is read."""
    message_text: Optional[str] = Field(None, description="Replacement message content")


# =============================================================================
# Records
# =============================================================================

class AccountRecord(BaseModel):
    """A persisted account row."""
    account_id: int
    username: str
    password: str

    model_config = ConfigDict(from_attributes=True, frozen=True)


class MessageRecord(BaseModel):
    """A persisted message row."""
    message_id: int
    posted_by: int
    message_text: str
    time_posted_epoch: int

    model_config = ConfigDict(from_attributes=True, frozen=True)


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Response model for error responses."""
    detail: str = Field(..., description="Error description")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
