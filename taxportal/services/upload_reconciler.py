"""Upload handling and checklist reconciliation.

Each uploaded file becomes a Document and is linked to at most one checklist
item:

1. If the client picked a checklist item and it is theirs and still open,
   the document takes that item's type and satisfies it.
2. If the client picked nothing, the first open item whose type matches the
   classifier's guess is satisfied.
3. Otherwise the document stays unlinked.

Batches are reconciled one file at a time in submission order, so two files
of the same type never both claim the same item.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.config import settings
from taxportal.exceptions import NotFound, ValidationFailed
from taxportal.models.db_models import (
    Document,
    DocumentStatus,
    DocumentType,
    RequiredDocument,
    User,
)
from taxportal.services.checklist_store import ChecklistStore, get_checklist_store
from taxportal.services.document_classifier import build_ai_classification, classify
from taxportal.services.file_handler import FileHandler
from taxportal.services.user_locks import checklist_lock
from taxportal.tasks import portal_tasks

logger = logging.getLogger(__name__)


@dataclass
class RejectedFile:
    filename: str
    reason: str


@dataclass
class UploadBatchResult:
    """Documents created from a batch, plus files rejected by validation."""

    documents: List[Document] = field(default_factory=list)
    rejected: List[RejectedFile] = field(default_factory=list)


class UploadReconciler:
    """Create documents from uploads and link them to checklist items."""

    def __init__(
        self,
        file_handler: Optional[FileHandler] = None,
        checklist_store: Optional[ChecklistStore] = None,
        rng: Optional[random.Random] = None,
    ):
        self.file_handler = file_handler or FileHandler()
        self.checklist_store = checklist_store or get_checklist_store()
        self.rng = rng

    async def upload_and_reconcile(
        self,
        db: AsyncSession,
        user_id: UUID,
        file: UploadFile,
        required_document_id: Optional[UUID] = None,
    ) -> Document:
        """
        Store one uploaded file and reconcile it against the user's checklist.

        Args:
            db: Database session
            user_id: Uploading client
            file: The upload
            required_document_id: Checklist item the client selected, if any

        Returns:
            The created Document (status ``processing``)

        Raises:
            ValidationFailed: bad type or size; nothing is written
        """
        self.file_handler.validate(file)

        async with checklist_lock(db, user_id):
            document_type = classify(file.filename)

            selected_item = None
            if required_document_id is not None:
                selected_item = await self._open_item(db, user_id, required_document_id)
                if selected_item is not None:
                    document_type = selected_item.document_type or document_type
                else:
                    logger.info(
                        f"Selected checklist item {required_document_id} is not open for "
                        f"user {user_id}; storing {file.filename} unlinked"
                    )

            stored = await self.file_handler.save_upload(file, str(user_id))
            try:
                document = Document(
                    user_id=user_id,
                    file_name=stored.stored_filename,
                    original_name=file.filename,
                    file_type=stored.content_type,
                    file_size=stored.file_size,
                    document_type=document_type,
                    status=DocumentStatus.PROCESSING,
                    tax_year=settings.TAX_YEAR,
                    ai_classification=build_ai_classification(file.filename, document_type, self.rng),
                )
                db.add(document)
                await db.flush()

                if required_document_id is not None:
                    target = selected_item
                else:
                    target = await self._first_open_item_of_type(db, user_id, document_type)

                if target is not None:
                    target.is_uploaded = True
                    target.document_id = document.id
                    logger.info(
                        f"Linked {file.filename} ({document_type}) to checklist item "
                        f"'{target.description}'"
                    )
                else:
                    logger.info(f"No open checklist item for {file.filename} ({document_type})")

                await db.commit()
                await db.refresh(document)
            except Exception:
                await db.rollback()
                self.file_handler.delete(str(user_id), stored.stored_filename)
                raise

        portal_tasks.schedule_document_verification(document.id)
        return document

    async def upload_batch(
        self,
        db: AsyncSession,
        user_id: UUID,
        files: Sequence[UploadFile],
        required_document_id: Optional[UUID] = None,
    ) -> UploadBatchResult:
        """
        Upload files strictly in submission order.

        A file that fails validation is reported in ``rejected`` and does not
        stop the files after it.
        """
        if not files:
            raise ValidationFailed("No files uploaded")
        if len(files) > settings.MAX_FILES_PER_UPLOAD:
            raise ValidationFailed(
                f"Too many files: at most {settings.MAX_FILES_PER_UPLOAD} per upload",
                details={"file_count": len(files)},
            )

        result = UploadBatchResult()
        for file in files:
            try:
                document = await self.upload_and_reconcile(db, user_id, file, required_document_id)
            except ValidationFailed as e:
                logger.warning(f"Rejected upload {file.filename}: {e.message}")
                result.rejected.append(RejectedFile(filename=file.filename or "", reason=e.message))
                continue
            result.documents.append(document)
        return result

    async def list_documents(self, db: AsyncSession, user_id: UUID) -> List[Document]:
        result = await db.execute(
            select(Document).where(Document.user_id == user_id).order_by(Document.uploaded_at)
        )
        return list(result.scalars().all())

    async def list_all_documents(self, db: AsyncSession) -> List[Tuple[Document, User]]:
        """Staff: every document with its owner, newest first."""
        result = await db.execute(
            select(Document, User)
            .join(User, Document.user_id == User.id)
            .order_by(Document.uploaded_at.desc(), Document.id)
        )
        return [(document, user) for document, user in result.all()]

    async def delete_document(self, db: AsyncSession, user_id: UUID, document_id: UUID) -> None:
        """Delete one of the user's documents, releasing any checklist item it satisfied."""
        async with checklist_lock(db, user_id):
            document = await self._owned_document(db, user_id, document_id)
            stored_filename = document.file_name

            await self.checklist_store.unlink_document(db, document.id)
            await db.delete(document)
            await db.commit()

        self.file_handler.delete(str(user_id), stored_filename)
        logger.info(f"Deleted document {document_id} for user {user_id}")

    async def review_document(
        self,
        db: AsyncSession,
        document_id: UUID,
        status: Optional[DocumentStatus] = None,
        document_type: Optional[str] = None,
    ) -> Document:
        """
        Staff: set a document's review status and/or correct its type.

        Both changes are applied in one transaction. Checklist links are left
        alone, including for rejected documents.
        """
        if status is None and document_type is None:
            raise ValidationFailed("Nothing to update")
        if document_type is not None and document_type not in {t.value for t in DocumentType}:
            raise ValidationFailed(
                f"Unknown document type: {document_type}",
                details={"document_type": document_type},
            )

        document = await self._get_document(db, document_id)
        if document_type is not None:
            document.document_type = document_type
        if status is not None:
            document.status = status
        await db.commit()
        await db.refresh(document)
        logger.info(
            f"Staff updated document {document_id}: status={document.status.value}, "
            f"type={document.document_type}"
        )
        return document

    async def set_document_status(
        self, db: AsyncSession, document_id: UUID, status: DocumentStatus
    ) -> Document:
        """Staff: set a document's review status (e.g. reject it)."""
        return await self.review_document(db, document_id, status=status)

    async def override_document_type(
        self, db: AsyncSession, document_id: UUID, document_type: str
    ) -> Document:
        """Staff: correct the classifier's document type."""
        return await self.review_document(db, document_id, document_type=document_type)

    async def _get_document(self, db: AsyncSession, document_id: UUID) -> Document:
        document = await db.get(Document, document_id)
        if document is None:
            raise NotFound("Document not found")
        return document

    async def _open_item(
        self, db: AsyncSession, user_id: UUID, item_id: UUID
    ) -> Optional[RequiredDocument]:
        item = await self.checklist_store.get_item(db, user_id, item_id)
        if item is None or item.is_uploaded:
            return None
        return item

    async def _first_open_item_of_type(
        self, db: AsyncSession, user_id: UUID, document_type: str
    ) -> Optional[RequiredDocument]:
        result = await db.execute(
            select(RequiredDocument)
            .where(
                RequiredDocument.user_id == user_id,
                RequiredDocument.document_type == document_type,
                RequiredDocument.is_uploaded.is_(False),
            )
            .order_by(RequiredDocument.sort_order)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _owned_document(self, db: AsyncSession, user_id: UUID, document_id: UUID) -> Document:
        result = await db.execute(
            select(Document).where(Document.id == document_id, Document.user_id == user_id)
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFound("Document not found")
        return document


_upload_reconciler: Optional[UploadReconciler] = None


def get_upload_reconciler() -> UploadReconciler:
    """Get or create the singleton upload reconciler."""
    global _upload_reconciler

    if _upload_reconciler is None:
        _upload_reconciler = UploadReconciler()

    return _upload_reconciler
