"""Return preparation pipeline.

A return moves through nine fixed stages. Its position comes from one of two
sources:

* ``ExplicitStatus``: staff set ``TaxReturn.status``. Authoritative.
* ``DerivedStatus``: no status was ever set, so the position is estimated
  from client activity (checklist, questionnaire, signatures, filing status).

``resolve`` turns either into the index of the current stage.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.exceptions import PreconditionFailed, ValidationFailed
from taxportal.models.db_models import (
    Document,
    RefundStatus,
    RequiredDocument,
    ReturnPrepStatus,
    ReturnType,
    SignatureType,
    TaxReturn,
    User,
)
from taxportal.services import returns
from taxportal.services.checklist_store import ChecklistStore, get_checklist_store
from taxportal.services.questionnaire_service import (
    QuestionnaireService,
    get_questionnaire_service,
    is_questionnaire_complete,
)
from taxportal.services.signature_service import SignatureService, get_signature_service

logger = logging.getLogger(__name__)

PIPELINE_STAGES: Tuple[ReturnPrepStatus, ...] = (
    ReturnPrepStatus.NOT_STARTED,
    ReturnPrepStatus.DOCUMENTS_GATHERING,
    ReturnPrepStatus.INFORMATION_REVIEW,
    ReturnPrepStatus.RETURN_PREPARATION,
    ReturnPrepStatus.QUALITY_REVIEW,
    ReturnPrepStatus.CLIENT_REVIEW,
    ReturnPrepStatus.SIGNATURE_REQUIRED,
    ReturnPrepStatus.FILING,
    ReturnPrepStatus.FILED,
)

STAGE_CONFIG = {
    ReturnPrepStatus.NOT_STARTED: ("Getting Started", "Begin your tax preparation journey"),
    ReturnPrepStatus.DOCUMENTS_GATHERING: ("Document Collection", "Upload all required tax documents"),
    ReturnPrepStatus.INFORMATION_REVIEW: (
        "Information Review",
        "Your preparer is reviewing your information",
    ),
    ReturnPrepStatus.RETURN_PREPARATION: ("Return Preparation", "Your tax return is being prepared"),
    ReturnPrepStatus.QUALITY_REVIEW: ("Quality Review", "Your return is undergoing quality review"),
    ReturnPrepStatus.CLIENT_REVIEW: ("Client Review", "Review your prepared return"),
    ReturnPrepStatus.SIGNATURE_REQUIRED: (
        "Signature Required",
        "Sign Form 8879 to authorize e-filing",
    ),
    ReturnPrepStatus.FILING: ("E-Filing", "Your return is being electronically filed"),
    ReturnPrepStatus.FILED: ("Filed", "Your tax return has been successfully filed"),
}

# Federal statuses meaning the return has been transmitted / accepted
FILING_STARTED_STATUSES = frozenset(
    {
        RefundStatus.SUBMITTED,
        RefundStatus.ACCEPTED,
        RefundStatus.APPROVED,
        RefundStatus.REFUND_SENT,
    }
)
FILING_ACCEPTED_STATUSES = frozenset(
    {RefundStatus.ACCEPTED, RefundStatus.APPROVED, RefundStatus.REFUND_SENT}
)

PERSONAL_RETURN_ALIAS = "personal"


class StageState(str, enum.Enum):
    COMPLETED = "completed"
    CURRENT = "current"
    PENDING = "pending"


@dataclass(frozen=True)
class CompletionSignals:
    """Client activity used to estimate progress when staff never set a stage."""

    documents_complete: bool = False
    has_documents: bool = False
    questionnaire_complete: bool = False
    engagement_letter_signed: bool = False
    form_8879_signed: bool = False
    federal_status: RefundStatus = RefundStatus.NOT_FILED


@dataclass(frozen=True)
class ExplicitStatus:
    stage: ReturnPrepStatus


@dataclass(frozen=True)
class DerivedStatus:
    signals: CompletionSignals


PipelineStatus = Union[ExplicitStatus, DerivedStatus]


@dataclass(frozen=True)
class ActionHint:
    label: str
    href: Optional[str] = None
    action: Optional[str] = None


@dataclass(frozen=True)
class StageView:
    stage: ReturnPrepStatus
    title: str
    description: str
    status: StageState
    action_hint: Optional[ActionHint] = None


@dataclass(frozen=True)
class BoardCard:
    """One return on the staff stage board."""

    return_id: UUID
    return_type: ReturnType
    name: str
    business_id: Optional[UUID]
    status: ReturnPrepStatus
    tax_year: int
    client_id: UUID
    client_name: str
    client_email: str
    created_at: Optional[datetime]


@dataclass
class StageBoard:
    statuses: List[ReturnPrepStatus]
    columns: Dict[ReturnPrepStatus, List[BoardCard]]

    @property
    def total(self) -> int:
        return sum(len(cards) for cards in self.columns.values())


def completion_vector(signals: CompletionSignals) -> Tuple[bool, ...]:
    """
    Per-stage completion for derived progress.

    A stage only counts as complete when every earlier stage does. The two
    signature stages share one signal, so derived progress never stops at
    signature_required.
    """
    raw = (
        signals.questionnaire_complete or signals.has_documents,
        signals.documents_complete and signals.has_documents,
        signals.questionnaire_complete,
        signals.engagement_letter_signed,
        signals.engagement_letter_signed,
        signals.form_8879_signed,
        signals.form_8879_signed,
        signals.federal_status in FILING_STARTED_STATUSES,
        signals.federal_status in FILING_ACCEPTED_STATUSES,
    )

    vector = []
    all_previous = True
    for complete in raw:
        all_previous = all_previous and complete
        vector.append(all_previous)
    return tuple(vector)


def resolve(status: PipelineStatus) -> Optional[int]:
    """Index of the current stage; None when a derived pipeline is fully complete."""
    if isinstance(status, ExplicitStatus):
        return PIPELINE_STAGES.index(status.stage)

    for index, complete in enumerate(completion_vector(status.signals)):
        if not complete:
            return index
    return None


def status_for_return(tax_return: TaxReturn, signals: CompletionSignals) -> PipelineStatus:
    if tax_return.status is not None:
        return ExplicitStatus(tax_return.status)
    return DerivedStatus(signals)


def _action_hint(
    stage: ReturnPrepStatus, status: PipelineStatus, form_8879_signed: bool
) -> Optional[ActionHint]:
    if stage in (ReturnPrepStatus.NOT_STARTED, ReturnPrepStatus.DOCUMENTS_GATHERING):
        return ActionHint("Upload Documents", href="/documents")
    if stage == ReturnPrepStatus.CLIENT_REVIEW:
        return ActionHint("Sign Form 8879", href="/signatures")
    if stage == ReturnPrepStatus.SIGNATURE_REQUIRED:
        if not form_8879_signed:
            return ActionHint("Sign Form 8879", href="/signatures")
        if isinstance(status, ExplicitStatus):
            return ActionHint("Mark Complete", action="advance")
    return None


def build_stage_view(status: PipelineStatus, form_8879_signed: bool = False) -> List[StageView]:
    """Ordered view of all nine stages with a single current stage (or none)."""
    current = resolve(status)
    views = []
    for index, stage in enumerate(PIPELINE_STAGES):
        if current is None or index < current:
            state = StageState.COMPLETED
        elif index == current:
            state = StageState.CURRENT
        else:
            state = StageState.PENDING

        title, description = STAGE_CONFIG[stage]
        hint = _action_hint(stage, status, form_8879_signed) if state == StageState.CURRENT else None
        views.append(StageView(stage, title, description, state, hint))
    return views


class ReturnPipelineService:
    """Stage views and stage transitions for a user's returns."""

    def __init__(
        self,
        checklist_store: Optional[ChecklistStore] = None,
        signature_service: Optional[SignatureService] = None,
        questionnaire_service: Optional[QuestionnaireService] = None,
    ):
        self.checklist_store = checklist_store or get_checklist_store()
        self.signature_service = signature_service or get_signature_service()
        self.questionnaire_service = questionnaire_service or get_questionnaire_service()

    async def list_returns(self, db: AsyncSession, user_id: UUID) -> List[TaxReturn]:
        return await returns.list_returns(db, user_id)

    async def ensure_personal_return(self, db: AsyncSession, user_id: UUID) -> TaxReturn:
        return await returns.ensure_personal_return(db, user_id)

    async def get_first_business_return(
        self, db: AsyncSession, user_id: UUID
    ) -> Optional[TaxReturn]:
        return await returns.get_first_business_return(db, user_id)

    async def get_return_for_user(
        self, db: AsyncSession, user_id: UUID, return_id: Union[UUID, str]
    ) -> TaxReturn:
        """Look up an owned return; ``personal`` addresses the personal return."""
        if return_id == PERSONAL_RETURN_ALIAS:
            return await self.ensure_personal_return(db, user_id)
        if isinstance(return_id, str):
            try:
                return_id = UUID(return_id)
            except ValueError:
                raise ValidationFailed(f"Invalid return id: {return_id}")
        return await returns.get_owned_return(db, user_id, return_id)

    async def collect_signals(
        self, db: AsyncSession, user_id: UUID, tax_return: TaxReturn
    ) -> CompletionSignals:
        """Gather the client-activity signals for one return."""
        conditions = [RequiredDocument.user_id == user_id]
        if tax_return.return_type == ReturnType.PERSONAL:
            conditions.append(
                or_(
                    RequiredDocument.return_id == tax_return.id,
                    RequiredDocument.return_id.is_(None),
                )
            )
        else:
            conditions.append(RequiredDocument.return_id == tax_return.id)
        result = await db.execute(select(RequiredDocument).where(*conditions))
        progress = self.checklist_store.progress(list(result.scalars().all()))

        document_count = await db.scalar(
            select(func.count(Document.id)).where(Document.user_id == user_id)
        )
        answers = await self.questionnaire_service.get_answers(db, user_id)

        return CompletionSignals(
            documents_complete=progress.is_complete,
            has_documents=bool(document_count),
            questionnaire_complete=is_questionnaire_complete(answers),
            engagement_letter_signed=await self.signature_service.has_signature(
                db, user_id, SignatureType.ENGAGEMENT_LETTER.value
            ),
            form_8879_signed=await self.signature_service.has_signature(
                db, user_id, SignatureType.FORM_8879.value
            ),
            federal_status=tax_return.federal_status or RefundStatus.NOT_FILED,
        )

    async def get_stage_view(
        self, db: AsyncSession, user_id: UUID, return_id: Union[UUID, str]
    ) -> Tuple[TaxReturn, List[StageView]]:
        """
        Build the stage view for one of the user's returns.

        Returns:
            Tuple of (return, ordered stage views)
        """
        tax_return = await self.get_return_for_user(db, user_id, return_id)
        signals = await self.collect_signals(db, user_id, tax_return)
        status = status_for_return(tax_return, signals)
        return tax_return, build_stage_view(status, signals.form_8879_signed)

    async def advance_from_signature(
        self, db: AsyncSession, user_id: UUID, return_id: Union[UUID, str]
    ) -> TaxReturn:
        """
        Client action: move a signed return from signature_required to filing.

        Raises:
            PreconditionFailed: status is not exactly signature_required, or
                Form 8879 has not been signed. Nothing is changed.
        """
        tax_return = await self.get_return_for_user(db, user_id, return_id)

        if tax_return.status != ReturnPrepStatus.SIGNATURE_REQUIRED:
            current = tax_return.status.value if tax_return.status else None
            raise PreconditionFailed(
                "Can only advance status when signature is required",
                details={"condition": "status_signature_required", "currentStatus": current},
            )

        if not await self.signature_service.has_signature(
            db, user_id, SignatureType.FORM_8879.value
        ):
            raise PreconditionFailed(
                "Please sign Form 8879 before advancing",
                details={"condition": "form_8879_signed"},
            )

        tax_return.status = ReturnPrepStatus.FILING
        await db.commit()
        await db.refresh(tax_return)

        logger.info(f"User {user_id} advanced return {tax_return.id} to filing")
        return tax_return

    async def get_stage_board(
        self, db: AsyncSession, return_type: Optional[ReturnType] = None
    ) -> StageBoard:
        """
        Staff: every client return grouped into one column per stage.

        Staff accounts' own returns are left out. A return whose status was
        never set sits in not_started; the board does not estimate progress
        from client activity.

        Args:
            return_type: Only show personal or business returns (all if None)
        """
        query = (
            select(TaxReturn, User)
            .join(User, TaxReturn.user_id == User.id)
            .where(User.is_admin.is_(False))
            .order_by(TaxReturn.created_at, TaxReturn.id)
        )
        if return_type is not None:
            query = query.where(TaxReturn.return_type == return_type)
        result = await db.execute(query)

        columns: Dict[ReturnPrepStatus, List[BoardCard]] = {
            stage: [] for stage in PIPELINE_STAGES
        }
        for tax_return, user in result.all():
            status = tax_return.status or ReturnPrepStatus.NOT_STARTED
            columns[status].append(
                BoardCard(
                    return_id=tax_return.id,
                    return_type=tax_return.return_type,
                    name=tax_return.name,
                    business_id=tax_return.business_id,
                    status=status,
                    tax_year=tax_return.tax_year,
                    client_id=user.id,
                    client_name=user.display_name,
                    client_email=user.email,
                    created_at=tax_return.created_at,
                )
            )

        board = StageBoard(statuses=list(PIPELINE_STAGES), columns=columns)
        logger.debug(f"Stage board built with {board.total} returns")
        return board

    async def set_status(
        self, db: AsyncSession, return_id: UUID, stage: ReturnPrepStatus
    ) -> TaxReturn:
        """Staff: set the stage unconditionally, backwards included."""
        tax_return = await returns.get_return(db, return_id)
        previous = tax_return.status
        tax_return.status = stage
        await db.commit()
        await db.refresh(tax_return)

        logger.info(
            f"Staff moved return {return_id} from "
            f"{previous.value if previous else 'unset'} to {stage.value}"
        )
        return tax_return

    async def update_refund_status(
        self,
        db: AsyncSession,
        return_id: UUID,
        federal_status: Optional[RefundStatus] = None,
        federal_amount=None,
        state_status: Optional[RefundStatus] = None,
        state_amount=None,
        state_name: Optional[str] = None,
    ) -> TaxReturn:
        """Staff: update refund tracking. The pipeline stage is not touched."""
        tax_return = await returns.get_return(db, return_id)

        if federal_status is not None:
            tax_return.federal_status = federal_status
        if federal_amount is not None:
            tax_return.federal_amount = federal_amount
        if state_status is not None:
            tax_return.state_status = state_status
        if state_amount is not None:
            tax_return.state_amount = state_amount
        if state_name is not None:
            tax_return.state_name = state_name

        await db.commit()
        await db.refresh(tax_return)
        logger.info(f"Staff updated refund tracking for return {return_id}")
        return tax_return


_return_pipeline_service: Optional[ReturnPipelineService] = None


def get_return_pipeline_service() -> ReturnPipelineService:
    """Get or create the singleton return pipeline service."""
    global _return_pipeline_service

    if _return_pipeline_service is None:
        _return_pipeline_service = ReturnPipelineService()

    return _return_pipeline_service
