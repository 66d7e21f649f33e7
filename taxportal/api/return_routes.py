"""Client return routes: return list, stage view and the signature advance."""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.api.deps import get_current_user
from taxportal.database import get_db
from taxportal.models.db_models import User
from taxportal.schemas.returns import StageListResponse, StageViewResponse, TaxReturnResponse
from taxportal.services.return_pipeline import StageState, get_return_pipeline_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/returns", tags=["returns"])


@router.get("", response_model=List[TaxReturnResponse])
async def list_returns(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_return_pipeline_service().list_returns(db, user.id)


@router.get("/{return_id}/stages", response_model=StageListResponse)
async def get_stages(
    return_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Stage view for a return id, or ``personal`` for the personal return."""
    tax_return, stages = await get_return_pipeline_service().get_stage_view(db, user.id, return_id)
    current = next((s.stage for s in stages if s.status == StageState.CURRENT), None)
    return StageListResponse(
        return_id=tax_return.id,
        explicit_status=tax_return.status,
        current_stage=current,
        stages=[StageViewResponse.model_validate(s) for s in stages],
    )


@router.post("/{return_id}/advance", response_model=TaxReturnResponse)
async def advance_from_signature(
    return_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Move a signed return from signature_required to filing."""
    return await get_return_pipeline_service().advance_from_signature(db, user.id, return_id)
