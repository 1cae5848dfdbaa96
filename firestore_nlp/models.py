"""Pydantic request/response schemas for the event-handling service."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# -- Eventarc Firestore payload (JSON encoding) ---------------------------------


class FirestoreDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Full resource name of the document")
    fields: dict[str, Any] = Field(default_factory=dict)
    create_time: str | None = Field(None, alias="createTime")
    update_time: str | None = Field(None, alias="updateTime")


class UpdateMask(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field_paths: list[str] = Field(default_factory=list, alias="fieldPaths")


class DocumentEventPayload(BaseModel):
    """Data of a ``google.cloud.firestore.document.v1.written`` event."""

    model_config = ConfigDict(populate_by_name=True)

    old_value: FirestoreDocument | None = Field(None, alias="oldValue")
    value: FirestoreDocument | None = None
    update_mask: UpdateMask | None = Field(None, alias="updateMask")


# -- Responses ------------------------------------------------------------------


class EventResponse(BaseModel):
    action: str  # "run", "delete_output" or "skip"
    reason: str | None = None
    failed_tasks: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    error: str | None = None
