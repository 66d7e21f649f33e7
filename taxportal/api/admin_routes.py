"""Staff routes: stage board, client views, refund tracking, document review."""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.api.deps import get_client, require_staff
from taxportal.database import get_db
from taxportal.exceptions import ValidationFailed
from taxportal.models.db_models import ReturnType, User
from taxportal.schemas.documents import (
    ChecklistResponse,
    ClientDocumentResponse,
    DocumentResponse,
    DocumentUpdate,
)
from taxportal.schemas.returns import (
    BoardCardResponse,
    RefundStatusUpdate,
    ReturnStatusUpdate,
    StageBoardResponse,
    TaxReturnResponse,
)
from taxportal.services.checklist_store import get_checklist_store
from taxportal.services.questionnaire_service import get_questionnaire_service
from taxportal.services.return_pipeline import get_return_pipeline_service
from taxportal.services.upload_reconciler import get_upload_reconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _parse_return_type(value: Optional[str]) -> Optional[ReturnType]:
    if value is None or value == "all":
        return None
    try:
        return ReturnType(value)
    except ValueError:
        raise ValidationFailed(f"Unknown return type: {value}", details={"type": value})


# Stage board
@router.get("/kanban", response_model=StageBoardResponse)
async def get_stage_board(
    return_type: Optional[str] = Query(default=None, alias="type"),
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Client returns grouped into one column per stage (``type``: personal, business or all)."""
    board = await get_return_pipeline_service().get_stage_board(
        db, _parse_return_type(return_type)
    )
    return StageBoardResponse(
        statuses=board.statuses,
        columns={
            stage: [BoardCardResponse.model_validate(card) for card in cards]
            for stage, cards in board.columns.items()
        },
    )


@router.patch("/returns/{return_id}/status", response_model=TaxReturnResponse)
async def set_return_status(
    return_id: UUID,
    payload: ReturnStatusUpdate,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    return await get_return_pipeline_service().set_status(db, return_id, payload.status)


@router.patch("/returns/{return_id}/refund", response_model=TaxReturnResponse)
async def update_refund(
    return_id: UUID,
    payload: RefundStatusUpdate,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    return await get_return_pipeline_service().update_refund_status(
        db, return_id, **payload.model_dump(exclude_none=True)
    )


# Client views
@router.get("/clients/{client_id}/required-documents", response_model=ChecklistResponse)
async def get_client_checklist(
    client: User = Depends(get_client),
    db: AsyncSession = Depends(get_db),
):
    store = get_checklist_store()
    items = await store.list_items(db, client.id)
    progress = store.progress(items)
    return ChecklistResponse(
        items=items,
        total=progress.total,
        satisfied=progress.satisfied,
        is_complete=progress.is_complete,
    )


@router.get("/clients/{client_id}/documents", response_model=List[DocumentResponse])
async def list_client_documents(
    client: User = Depends(get_client),
    db: AsyncSession = Depends(get_db),
):
    return await get_upload_reconciler().list_documents(db, client.id)


# Documents
@router.get("/documents", response_model=List[ClientDocumentResponse])
async def list_all_documents(
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    rows = await get_upload_reconciler().list_all_documents(db)
    return [
        ClientDocumentResponse(
            **DocumentResponse.model_validate(document).model_dump(),
            user_id=owner.id,
            client_name=owner.display_name,
            client_email=owner.email,
        )
        for document, owner in rows
    ]


@router.patch("/documents/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: UUID,
    payload: DocumentUpdate,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Reject/verify a document or correct its type, in one change."""
    return await get_upload_reconciler().review_document(
        db, document_id, status=payload.status, document_type=payload.document_type
    )


@router.post("/regenerate-all-checklists")
async def regenerate_all_checklists(
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    count = await get_questionnaire_service().regenerate_all(db)
    return {"success": True, "users": count}
