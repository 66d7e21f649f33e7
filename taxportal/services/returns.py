"""Tax return lookup and creation."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.config import settings
from taxportal.exceptions import NotFound
from taxportal.models.db_models import Business, ReturnType, TaxReturn
from taxportal.services.user_locks import checklist_lock

logger = logging.getLogger(__name__)

PERSONAL_RETURN_NAME = "Personal Return"


async def list_returns(db: AsyncSession, user_id: UUID) -> List[TaxReturn]:
    """Personal return first, then business returns in creation order."""
    result = await db.execute(
        select(TaxReturn)
        .where(TaxReturn.user_id == user_id)
        .order_by(TaxReturn.created_at)
    )
    returns = list(result.scalars().all())
    return sorted(returns, key=lambda r: r.return_type != ReturnType.PERSONAL)


async def get_personal_return(db: AsyncSession, user_id: UUID) -> Optional[TaxReturn]:
    result = await db.execute(
        select(TaxReturn)
        .where(TaxReturn.user_id == user_id, TaxReturn.return_type == ReturnType.PERSONAL)
        .order_by(TaxReturn.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def ensure_personal_return(db: AsyncSession, user_id: UUID) -> TaxReturn:
    """
    Get the user's personal return, creating and committing it if needed.

    Creation runs under the user's checklist lock and is backed by the
    ``uq_tax_returns_one_personal`` index, so concurrent callers end up with
    the same row.
    """
    tax_return = await get_personal_return(db, user_id)
    if tax_return is not None:
        return tax_return

    async with checklist_lock(db, user_id):
        tax_return = await get_personal_return(db, user_id)
        if tax_return is None:
            tax_return = TaxReturn(
                user_id=user_id,
                return_type=ReturnType.PERSONAL,
                name=PERSONAL_RETURN_NAME,
                tax_year=settings.TAX_YEAR,
            )
            db.add(tax_return)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info(f"Personal return for user {user_id} created concurrently")
                tax_return = await get_personal_return(db, user_id)
            else:
                logger.info(f"Created personal return {tax_return.id} for user {user_id}")
        else:
            await db.commit()

    return tax_return


async def get_first_business_return(db: AsyncSession, user_id: UUID) -> Optional[TaxReturn]:
    result = await db.execute(
        select(TaxReturn)
        .where(TaxReturn.user_id == user_id, TaxReturn.return_type == ReturnType.BUSINESS)
        .order_by(TaxReturn.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_business_return(db: AsyncSession, business: Business) -> TaxReturn:
    """Open a business return for a newly added business. Caller commits."""
    tax_return = TaxReturn(
        user_id=business.user_id,
        business_id=business.id,
        return_type=ReturnType.BUSINESS,
        name=business.name,
        tax_year=business.tax_year,
    )
    db.add(tax_return)
    await db.flush()
    logger.info(f"Created business return {tax_return.id} for '{business.name}'")
    return tax_return


async def get_owned_return(db: AsyncSession, user_id: UUID, return_id: UUID) -> TaxReturn:
    """Get one of the user's returns; another user's return is reported as missing."""
    result = await db.execute(
        select(TaxReturn).where(TaxReturn.id == return_id, TaxReturn.user_id == user_id)
    )
    tax_return = result.scalar_one_or_none()
    if tax_return is None:
        raise NotFound("Return not found")
    return tax_return


async def get_return(db: AsyncSession, return_id: UUID) -> TaxReturn:
    tax_return = await db.get(TaxReturn, return_id)
    if tax_return is None:
        raise NotFound("Return not found")
    return tax_return
