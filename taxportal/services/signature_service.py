"""Client e-signatures on the engagement letter and Form 8879."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.config import settings
from taxportal.exceptions import ValidationFailed
from taxportal.models.db_models import Signature, SignatureType

logger = logging.getLogger(__name__)


class SignatureService:
    """Record and query client signatures for the current tax year."""

    async def record_signature(
        self,
        db: AsyncSession,
        user_id: UUID,
        document_type: str,
        signature_data: str,
        ip_address: Optional[str] = None,
    ) -> Signature:
        if document_type not in {t.value for t in SignatureType}:
            raise ValidationFailed(
                f"Cannot sign document type: {document_type}",
                details={"document_type": document_type},
            )
        if not signature_data or not signature_data.strip():
            raise ValidationFailed("Signature data is required")

        signature = Signature(
            user_id=user_id,
            document_type=document_type,
            signature_data=signature_data,
            ip_address=ip_address,
            tax_year=settings.TAX_YEAR,
        )
        db.add(signature)
        await db.commit()
        await db.refresh(signature)

        logger.info(f"User {user_id} signed {document_type}")
        return signature

    async def list_signatures(self, db: AsyncSession, user_id: UUID) -> List[Signature]:
        result = await db.execute(
            select(Signature)
            .where(Signature.user_id == user_id, Signature.tax_year == settings.TAX_YEAR)
            .order_by(Signature.signed_at)
        )
        return list(result.scalars().all())

    async def has_signature(self, db: AsyncSession, user_id: UUID, document_type: str) -> bool:
        result = await db.execute(
            select(Signature.id)
            .where(
                Signature.user_id == user_id,
                Signature.document_type == document_type,
                Signature.tax_year == settings.TAX_YEAR,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None


_signature_service: Optional[SignatureService] = None


def get_signature_service() -> SignatureService:
    """Get or create the singleton signature service."""
    global _signature_service

    if _signature_service is None:
        _signature_service = SignatureService()

    return _signature_service
