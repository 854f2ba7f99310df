"""Shared response envelopes and operation results."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    timestamp: datetime
    request_id: str
    api_version: str = "v1"


class ApiResponse(BaseModel):
    """Standard envelope returned by every endpoint."""

    status: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Human readable outcome")
    data: Dict[str, Any] = Field(default_factory=dict)
    meta: ResponseMeta


class ErrorDetail(BaseModel):
    """Problem details (RFC 7807)."""

    title: str
    status: int
    detail: str
    instance: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime


class RenderResult(BaseModel):
    """Envelope every PDF renderer returns.

    ``pdf_data`` is base64, optionally carrying a ``data:...;base64,`` prefix.
    """

    success: bool
    pdf_data: Optional[str] = None
    error: Optional[str] = None


class DocumentResult(BaseModel):
    """Outcome of regenerating one document."""

    document_type: str
    success: bool
    document_id: Optional[UUID] = None
    pdf_path: Optional[str] = None
    error: Optional[str] = None


class WorkflowResult(BaseModel):
    """Outcome of a save workflow, returned to the wizard UI."""

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    status: Optional[str] = Field(None, description="Submission status after the save")
    documents: List[DocumentResult] = Field(default_factory=list)

    @classmethod
    def failure(cls, error: str, documents: Optional[List[DocumentResult]] = None) -> "WorkflowResult":
        return cls(success=False, error=error, documents=documents or [])
