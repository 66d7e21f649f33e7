"""Pydantic schemas for tax returns and their pipeline stages."""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from taxportal.models.db_models import RefundStatus, ReturnPrepStatus, ReturnType
from taxportal.services.return_pipeline import StageState


class TaxReturnResponse(BaseModel):
    """A personal or business return."""
    id: UUID
    business_id: Optional[UUID] = None
    return_type: ReturnType
    name: str
    status: Optional[ReturnPrepStatus] = None
    federal_status: RefundStatus
    federal_amount: Optional[Decimal] = None
    state_status: RefundStatus
    state_amount: Optional[Decimal] = None
    state_name: Optional[str] = None
    tax_year: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActionHintResponse(BaseModel):
    label: str
    href: Optional[str] = None
    action: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class StageViewResponse(BaseModel):
    """One stage of the pipeline as shown to the client."""
    stage: ReturnPrepStatus
    title: str
    description: str
    status: StageState
    action_hint: Optional[ActionHintResponse] = None

    model_config = ConfigDict(from_attributes=True)


class StageListResponse(BaseModel):
    """All nine stages of one return, in pipeline order."""
    return_id: UUID
    explicit_status: Optional[ReturnPrepStatus] = None
    current_stage: Optional[ReturnPrepStatus] = None
    stages: List[StageViewResponse]


class ReturnStatusUpdate(BaseModel):
    """Staff stage change."""
    status: ReturnPrepStatus


class RefundStatusUpdate(BaseModel):
    """Staff refund tracking update."""
    federal_status: Optional[RefundStatus] = None
    federal_amount: Optional[Decimal] = Field(default=None, ge=0)
    state_status: Optional[RefundStatus] = None
    state_amount: Optional[Decimal] = Field(default=None, ge=0)
    state_name: Optional[str] = Field(default=None, max_length=100)


class BoardCardResponse(BaseModel):
    """A client return on the staff stage board."""
    return_id: UUID
    return_type: ReturnType
    name: str
    business_id: Optional[UUID] = None
    status: ReturnPrepStatus
    tax_year: int
    client_id: UUID
    client_name: str
    client_email: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StageBoardResponse(BaseModel):
    """Client returns grouped by stage; ``statuses`` gives the column order."""
    statuses: List[ReturnPrepStatus]
    columns: Dict[ReturnPrepStatus, List[BoardCardResponse]]

    model_config = ConfigDict(from_attributes=True)
