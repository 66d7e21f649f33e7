"""Pydantic schemas for documents and checklist items."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from taxportal.models.db_models import DocumentStatus


class DocumentResponse(BaseModel):
    """Uploaded document metadata."""
    id: UUID
    file_name: str
    original_name: str
    file_type: str
    file_size: int
    document_type: str
    status: DocumentStatus
    tax_year: int
    ai_classification: Optional[Dict[str, Any]] = None
    uploaded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RejectedFileResponse(BaseModel):
    """A file from a batch that failed validation."""
    filename: str
    reason: str


class UploadResponse(BaseModel):
    """Result of a multi-file upload."""
    documents: List[DocumentResponse] = []
    rejected: List[RejectedFileResponse] = []


class DocumentUpdate(BaseModel):
    """Staff override of a document's review status or type."""
    status: Optional[DocumentStatus] = None
    document_type: Optional[str] = Field(default=None, min_length=1, max_length=50)


class RequiredDocumentResponse(BaseModel):
    """One checklist item."""
    id: UUID
    return_id: Optional[UUID] = None
    document_type: str
    description: str
    sort_order: int
    is_uploaded: bool
    marked_not_applicable: bool
    document_id: Optional[UUID] = None
    tax_year: int

    model_config = ConfigDict(from_attributes=True)


class ChecklistResponse(BaseModel):
    """The client's checklist with progress."""
    items: List[RequiredDocumentResponse]
    total: int
    satisfied: int
    is_complete: bool


class NotApplicableUpdate(BaseModel):
    value: bool


class ClientDocumentResponse(DocumentResponse):
    """Staff listing row: document metadata plus its owner."""
    user_id: UUID
    client_name: str
    client_email: str
