"""Pydantic schemas package."""
from taxportal.schemas.documents import (
    ChecklistResponse,
    ClientDocumentResponse,
    DocumentResponse,
    DocumentUpdate,
    NotApplicableUpdate,
    RejectedFileResponse,
    RequiredDocumentResponse,
    UploadResponse,
)
from taxportal.schemas.questionnaire import (
    ChecklistRegenerated,
    MessageCreate,
    MessageResponse,
    QuestionnaireAnswers,
    QuestionnaireSave,
    SignatureCreate,
    SignatureResponse,
)
from taxportal.schemas.returns import (
    ActionHintResponse,
    BoardCardResponse,
    RefundStatusUpdate,
    ReturnStatusUpdate,
    StageBoardResponse,
    StageListResponse,
    StageViewResponse,
    TaxReturnResponse,
)
