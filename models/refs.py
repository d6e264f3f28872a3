"""Data reference models for report artifact storage and retrieval."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, Field


class DataReference(BaseModel):
    """Reference to a stored artifact with metadata for retrieval and verification.

    Attributes:
        storage_uri: Absolute file path to the artifact
        content_hash: SHA256 hash of the content for integrity verification
        content_type: MIME type (e.g., "application/json")
        size_bytes: Size of the artifact in bytes
        stored_at: Timestamp when the artifact was stored
    """
    storage_uri: str = Field(..., description="Absolute file path to the artifact")
    content_hash: str = Field(..., description="SHA256 hash of content")
    content_type: str = Field(default="application/json", description="MIME type")
    size_bytes: int = Field(..., description="Size in bytes")
    stored_at: datetime = Field(default_factory=datetime.utcnow, description="Storage timestamp")


class BatchReportRefs(BaseModel):
    """References to the artifacts written by one report batch.

    Attributes:
        batch_id: Identifier of the batch run
        summary_ref: Reference to the batch summary JSON
        order_refs: Per-order report references keyed by order id
    """
    batch_id: str = Field(..., description="Batch identifier")
    summary_ref: Optional[DataReference] = Field(None, description="Batch summary artifact reference")
    order_refs: Dict[str, DataReference] = Field(default_factory=dict, description="Order report references")
