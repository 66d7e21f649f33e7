"""Pydantic schemas for the questionnaire, signatures and messages."""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from taxportal.models.db_models import MessageType


class QuestionnaireSave(BaseModel):
    """Answers keyed by question id (bool, str, list of str, or null)."""
    answers: Dict[str, Any] = Field(..., min_length=1)


class QuestionnaireAnswers(BaseModel):
    answers: Dict[str, Any]
    is_complete: bool


class ChecklistRegenerated(BaseModel):
    """Counts from a checklist regeneration."""
    added: int
    removed: int
    kept: int
    total: int


class SignatureCreate(BaseModel):
    document_type: str
    signature_data: str = Field(..., min_length=1)


class SignatureResponse(BaseModel):
    id: UUID
    document_type: str
    ip_address: Optional[str] = None
    tax_year: int
    signed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    id: UUID
    content: str
    message_type: MessageType
    is_from_client: bool
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
