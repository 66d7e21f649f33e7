"""Database models package."""
from taxportal.models.db_models import (
    Business,
    Document,
    DocumentStatus,
    DocumentType,
    Message,
    MessageType,
    QuestionnaireResponse,
    RefundStatus,
    RequiredDocument,
    ReturnPrepStatus,
    ReturnType,
    Signature,
    SignatureType,
    TaxReturn,
    User,
)

__all__ = [
    # Clients & questionnaire
    "User",
    "QuestionnaireResponse",
    "Business",
    # Documents & checklist
    "Document",
    "DocumentStatus",
    "DocumentType",
    "RequiredDocument",
    # Returns
    "TaxReturn",
    "ReturnType",
    "ReturnPrepStatus",
    "RefundStatus",
    # Signatures & messages
    "Signature",
    "SignatureType",
    "Message",
    "MessageType",
]
