"""Client API routes: questionnaire, checklist, documents, signatures, messages."""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.api.deps import get_current_user
from taxportal.database import get_db
from taxportal.exceptions import NotFound, ValidationFailed
from taxportal.models.db_models import User
from taxportal.schemas.documents import (
    ChecklistResponse,
    DocumentResponse,
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
from taxportal.schemas.returns import TaxReturnResponse
from taxportal.services.checklist_store import get_checklist_store
from taxportal.services.message_service import get_message_service
from taxportal.services.questionnaire_service import (
    get_questionnaire_service,
    is_questionnaire_complete,
)
from taxportal.services.signature_service import get_signature_service
from taxportal.services.upload_reconciler import get_upload_reconciler

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api")


# Questionnaire
@api_router.get("/questionnaire", response_model=QuestionnaireAnswers)
async def get_questionnaire(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    answers = await get_questionnaire_service().get_answers(db, user.id)
    return QuestionnaireAnswers(answers=answers, is_complete=is_questionnaire_complete(answers))


@api_router.put("/questionnaire", response_model=ChecklistRegenerated)
async def save_questionnaire(
    payload: QuestionnaireSave,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Save answers and regenerate the document checklist."""
    result = await get_questionnaire_service().save_answers(db, user.id, payload.answers)
    return ChecklistRegenerated(
        added=result.added, removed=result.removed, kept=result.kept, total=len(result.items)
    )


@api_router.post("/questionnaire/complete", response_model=List[TaxReturnResponse])
async def complete_questionnaire(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_questionnaire_service().complete_questionnaire(db, user.id)


# Checklist
@api_router.get("/required-documents", response_model=ChecklistResponse)
async def list_required_documents(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    store = get_checklist_store()
    items = await store.list_items(db, user.id)
    progress = store.progress(items)
    return ChecklistResponse(
        items=items,
        total=progress.total,
        satisfied=progress.satisfied,
        is_complete=progress.is_complete,
    )


@api_router.patch(
    "/required-documents/{item_id}/not-applicable", response_model=RequiredDocumentResponse
)
async def mark_not_applicable(
    item_id: UUID,
    payload: NotApplicableUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await get_checklist_store().mark_not_applicable(db, user.id, item_id, payload.value)
    if item is None:
        raise NotFound("Checklist item not found")
    return item


# Documents
@api_router.get("/documents", response_model=List[DocumentResponse])
async def list_documents(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_upload_reconciler().list_documents(db, user.id)


@api_router.post("/documents/upload", response_model=UploadResponse)
async def upload_documents(
    files: List[UploadFile] = File(...),
    required_document_id: Optional[str] = Form(None, alias="requiredDocumentId"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Upload files in order, linking each to the checklist where possible."""
    selected_item = None
    if required_document_id:
        try:
            selected_item = UUID(required_document_id)
        except ValueError:
            raise ValidationFailed(
                "Invalid requiredDocumentId",
                details={"requiredDocumentId": required_document_id},
            )

    result = await get_upload_reconciler().upload_batch(db, user.id, files, selected_item)
    return UploadResponse(
        documents=result.documents,
        rejected=[RejectedFileResponse(filename=r.filename, reason=r.reason) for r in result.rejected],
    )


@api_router.delete("/documents/{document_id}")
async def delete_document(
    document_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_upload_reconciler().delete_document(db, user.id, document_id)
    return {"success": True}


# Signatures
@api_router.get("/signatures", response_model=List[SignatureResponse])
async def list_signatures(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_signature_service().list_signatures(db, user.id)


@api_router.post("/signatures", response_model=SignatureResponse)
async def create_signature(
    payload: SignatureCreate,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ip_address = request.client.host if request.client else None
    return await get_signature_service().record_signature(
        db, user.id, payload.document_type, payload.signature_data, ip_address
    )


# Messages
@api_router.get("/messages", response_model=List[MessageResponse])
async def list_messages(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_message_service().list_messages(db, user.id)


@api_router.post("/messages", response_model=MessageResponse)
async def post_message(
    payload: MessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_message_service().post_message(db, user.id, payload.content)


@api_router.post("/messages/mark-read")
async def mark_messages_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_message_service().mark_read(db, user.id)
    return {"success": True}
