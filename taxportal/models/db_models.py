"""SQLAlchemy database models."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from taxportal.database import Base


def local_now():
    """Return current time in local timezone."""
    return datetime.now().astimezone()


def _enum(enum_cls):
    """Enum column type that stores member values (lowercase) rather than names."""
    return Enum(enum_cls, values_callable=lambda members: [m.value for m in members])


class DocumentType(str, enum.Enum):
    """Tax document type enumeration."""

    W2 = "w2"
    FORM_1099_NEC = "1099_nec"
    FORM_1099_K = "1099_k"
    FORM_1099_INT = "1099_int"
    FORM_1099_DIV = "1099_div"
    FORM_1099_B = "1099_b"
    K1 = "k1"
    BROKERAGE = "brokerage"
    MORTGAGE_INTEREST = "mortgage_interest"
    PROPERTY_TAX = "property_tax"
    CHARITABLE_DONATION = "charitable_donation"
    MEDICAL_EXPENSE = "medical_expense"
    BUSINESS_EXPENSE = "business_expense"
    ENGAGEMENT_LETTER = "engagement_letter"
    FORM_8879 = "form_8879"
    OTHER = "other"


class DocumentStatus(str, enum.Enum):
    """Uploaded document status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ReturnType(str, enum.Enum):
    """Return type enumeration."""

    PERSONAL = "personal"
    BUSINESS = "business"


class ReturnPrepStatus(str, enum.Enum):
    """Return preparation pipeline stages, in pipeline order."""

    NOT_STARTED = "not_started"
    DOCUMENTS_GATHERING = "documents_gathering"
    INFORMATION_REVIEW = "information_review"
    RETURN_PREPARATION = "return_preparation"
    QUALITY_REVIEW = "quality_review"
    CLIENT_REVIEW = "client_review"
    SIGNATURE_REQUIRED = "signature_required"
    FILING = "filing"
    FILED = "filed"


class RefundStatus(str, enum.Enum):
    """Federal/state refund tracking status (independent of the pipeline stage)."""

    NOT_FILED = "not_filed"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    PROCESSING = "processing"
    APPROVED = "approved"
    REFUND_SENT = "refund_sent"
    COMPLETED = "completed"


class SignatureType(str, enum.Enum):
    """Documents a client can sign in the portal."""

    ENGAGEMENT_LETTER = "engagement_letter"
    FORM_8879 = "form_8879"


class MessageType(str, enum.Enum):
    """Message type enumeration."""

    TEXT = "text"
    FILE = "file"
    SYSTEM = "system"


class User(Base):
    """Portal user: a client, or staff when is_admin is set."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    has_completed_questionnaire = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)

    # Relationships
    returns = relationship("TaxReturn", back_populates="user", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        """Full name for staff views, falling back to the email."""
        full_name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full_name or self.email


class QuestionnaireResponse(Base):
    """One answer to one questionnaire question, overwritten on re-submission."""

    __tablename__ = "questionnaire_responses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(String(100), nullable=False)
    answer = Column(JSON, nullable=True)  # bool | str | list[str] | None
    tax_year = Column(Integer, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_questionnaire_user_question"),
    )


class Business(Base):
    """A business entity owned by a client; each gets its own business return."""

    __tablename__ = "businesses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    entity_type = Column(String(50), default="llc", nullable=False)
    tax_year = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)


class TaxReturn(Base):
    """A personal or business return and its preparation stage."""

    __tablename__ = "tax_returns"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    business_id = Column(Uuid, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=True)
    return_type = Column(_enum(ReturnType), nullable=False)
    name = Column(String(255), nullable=False)
    # None = never set by staff; the stage is then derived from client activity
    status = Column(_enum(ReturnPrepStatus), nullable=True)
    federal_status = Column(_enum(RefundStatus), default=RefundStatus.NOT_FILED, nullable=False)
    federal_amount = Column(Numeric(10, 2), nullable=True)
    state_status = Column(_enum(RefundStatus), default=RefundStatus.NOT_FILED, nullable=False)
    state_amount = Column(Numeric(10, 2), nullable=True)
    state_name = Column(String(100), nullable=True)
    tax_year = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=local_now, onupdate=local_now, nullable=False
    )

    # Relationships
    user = relationship("User", back_populates="returns")
    business = relationship("Business")
    required_documents = relationship("RequiredDocument", back_populates="tax_return")


class Document(Base):
    """Uploaded file metadata. Content lives in file storage."""

    __tablename__ = "documents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    file_name = Column(String(255), nullable=False)  # Stored name
    original_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=False)  # MIME type
    file_size = Column(Integer, nullable=False)
    document_type = Column(String(50), default=DocumentType.OTHER.value, nullable=False)
    status = Column(_enum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False)
    tax_year = Column(Integer, nullable=False)
    ai_classification = Column(JSON, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), default=local_now, nullable=False)

    # Relationships
    user = relationship("User", back_populates="documents")


class RequiredDocument(Base):
    """One checklist item derived from questionnaire answers."""

    __tablename__ = "required_documents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    return_id = Column(Uuid, ForeignKey("tax_returns.id", ondelete="SET NULL"), nullable=True)
    document_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    is_uploaded = Column(Boolean, default=False, nullable=False)
    marked_not_applicable = Column(Boolean, default=False, nullable=False)
    document_id = Column(Uuid, ForeignKey("documents.id", ondelete="SET NULL"), nullable=True)
    tax_year = Column(Integer, nullable=False)

    # Relationships
    tax_return = relationship("TaxReturn", back_populates="required_documents")
    document = relationship("Document")

    __table_args__ = (
        UniqueConstraint(
            "user_id", "document_type", "description", name="uq_required_document_key"
        ),
    )

    @property
    def is_satisfied(self) -> bool:
        """Uploaded or marked not applicable."""
        return bool(self.is_uploaded or self.marked_not_applicable)


class Signature(Base):
    """A client's signature on an engagement letter or Form 8879."""

    __tablename__ = "signatures"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    document_type = Column(String(50), nullable=False)
    signature_data = Column(Text, nullable=False)  # base64 signature image
    ip_address = Column(String(64), nullable=True)
    tax_year = Column(Integer, nullable=False)
    signed_at = Column(DateTime(timezone=True), default=local_now, nullable=False)


class Message(Base):
    """Client/staff message thread entry."""

    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(_enum(MessageType), default=MessageType.TEXT, nullable=False)
    is_from_client = Column(Boolean, default=True, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=local_now, nullable=False)


# Database Indexes
Index("ix_questionnaire_responses_user_id", QuestionnaireResponse.user_id)
Index("ix_businesses_user_id", Business.user_id)
Index("ix_tax_returns_user_id", TaxReturn.user_id)
Index("ix_tax_returns_status", TaxReturn.status)
Index("ix_documents_user_id", Document.user_id)
Index("ix_documents_document_type", Document.document_type)
Index("ix_documents_status", Document.status)
Index("ix_required_documents_user_id", RequiredDocument.user_id)
Index("ix_required_documents_document_id", RequiredDocument.document_id)
Index("ix_signatures_user_id", Signature.user_id)
Index("ix_messages_user_id", Message.user_id)
# One personal return per client
Index(
    "uq_tax_returns_one_personal",
    TaxReturn.user_id,
    unique=True,
    postgresql_where=text("return_type = 'personal'"),
    sqlite_where=text("return_type = 'personal'"),
)
