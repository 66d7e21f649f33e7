"""Questionnaire answers and the checklist derived from them."""

import logging
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.config import settings
from taxportal.exceptions import NotFound, ValidationFailed
from taxportal.models.db_models import (
    Business,
    QuestionnaireResponse,
    ReturnPrepStatus,
    TaxReturn,
    User,
)
from taxportal.services import returns
from taxportal.services.checklist_store import (
    ChecklistStore,
    RegenerationResult,
    get_checklist_store,
)
from taxportal.services.requirement_rules import generate

logger = logging.getLogger(__name__)

# A questionnaire counts as complete once each of these has a stored answer
REQUIRED_QUESTIONS = (
    "filing_status",
    "marital_change",
    "employment_type",
    "side_business",
    "crypto_transactions",
    "homeowner",
    "charitable_donations",
    "medical_expenses",
    "student_loans",
    "education_expenses",
    "529_contributions",
    "dependents",
    "major_life_events",
    "home_office",
    "vehicle_business_use",
)

BUSINESS_NAMES_QUESTION = "side_business_type"


def is_questionnaire_complete(answers: Mapping[str, Any]) -> bool:
    """True when every required question has an answer (None counts as answered)."""
    return all(question_id in answers for question_id in REQUIRED_QUESTIONS)


class QuestionnaireService:
    """Save answers, keep businesses in sync and regenerate the checklist."""

    def __init__(self, checklist_store: Optional[ChecklistStore] = None):
        self.checklist_store = checklist_store or get_checklist_store()

    async def get_responses(self, db: AsyncSession, user_id: UUID) -> List[QuestionnaireResponse]:
        result = await db.execute(
            select(QuestionnaireResponse)
            .where(QuestionnaireResponse.user_id == user_id)
            .order_by(QuestionnaireResponse.question_id)
        )
        return list(result.scalars().all())

    async def get_answers(self, db: AsyncSession, user_id: UUID) -> Dict[str, Any]:
        """Map question id to stored answer."""
        return {r.question_id: r.answer for r in await self.get_responses(db, user_id)}

    async def save_answers(
        self, db: AsyncSession, user_id: UUID, answers: Mapping[str, Any]
    ) -> RegenerationResult:
        """
        Upsert answers, then rebuild everything that depends on them.

        Businesses named in the side_business_type answer are created (with a
        business return each) before the checklist is regenerated, so business
        documents can link to a business return.

        Returns:
            RegenerationResult of the checklist rebuild
        """
        if not answers:
            raise ValidationFailed("No answers provided")
        for question_id in answers:
            if not isinstance(question_id, str) or not question_id.strip():
                raise ValidationFailed("Question ids must be non-empty strings")

        existing = {r.question_id: r for r in await self.get_responses(db, user_id)}
        for question_id, answer in answers.items():
            response = existing.get(question_id)
            if response is not None:
                response.answer = answer
            else:
                db.add(
                    QuestionnaireResponse(
                        user_id=user_id,
                        question_id=question_id,
                        answer=answer,
                        tax_year=settings.TAX_YEAR,
                    )
                )
        await db.flush()

        stored_answers = await self.get_answers(db, user_id)
        await self._sync_businesses(db, user_id, stored_answers.get(BUSINESS_NAMES_QUESTION))
        await db.commit()

        logger.info(f"Saved {len(answers)} questionnaire answers for user {user_id}")
        return await self.generate_checklist(db, user_id)

    async def generate_checklist(self, db: AsyncSession, user_id: UUID) -> RegenerationResult:
        """Regenerate the user's checklist from their stored answers."""
        answers = await self.get_answers(db, user_id)
        requirements = generate(
            [{"question_id": question_id, "answer": answer} for question_id, answer in answers.items()]
        )

        personal_return = await returns.ensure_personal_return(db, user_id)
        business_return = await returns.get_first_business_return(db, user_id)

        return await self.checklist_store.regenerate(
            db,
            user_id,
            requirements,
            personal_return_id=personal_return.id,
            business_return_id=business_return.id if business_return else None,
        )

    async def regenerate_all(self, db: AsyncSession) -> int:
        """Staff: regenerate the checklist of every client that has answers."""
        result = await db.execute(
            select(User.id)
            .where(
                User.is_admin.is_(False),
                select(QuestionnaireResponse.id)
                .where(QuestionnaireResponse.user_id == User.id)
                .exists(),
            )
            .order_by(User.created_at)
        )
        user_ids = list(result.scalars().all())

        for user_id in user_ids:
            await self.generate_checklist(db, user_id)

        logger.info(f"Regenerated checklists for {len(user_ids)} users")
        return len(user_ids)

    async def complete_questionnaire(self, db: AsyncSession, user_id: UUID) -> List[TaxReturn]:
        """
        Mark the questionnaire done and open document collection.

        Returns that were never started move to documents_gathering; returns
        already further along are left alone.
        """
        user = await db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")

        user.has_completed_questionnaire = True
        user_returns = await returns.list_returns(db, user_id)
        for tax_return in user_returns:
            if tax_return.status in (None, ReturnPrepStatus.NOT_STARTED):
                tax_return.status = ReturnPrepStatus.DOCUMENTS_GATHERING

        await db.commit()
        logger.info(f"Questionnaire completed for user {user_id}")
        return user_returns

    async def _sync_businesses(self, db: AsyncSession, user_id: UUID, business_names: Any) -> None:
        if not isinstance(business_names, list):
            return

        result = await db.execute(select(Business).where(Business.user_id == user_id))
        known = {business.name.lower() for business in result.scalars().all()}

        for name in business_names:
            if not isinstance(name, str) or not name.strip() or name.lower() in known:
                continue
            business = Business(user_id=user_id, name=name, tax_year=settings.TAX_YEAR)
            db.add(business)
            await db.flush()
            await returns.create_business_return(db, business)
            known.add(name.lower())


_questionnaire_service: Optional[QuestionnaireService] = None


def get_questionnaire_service() -> QuestionnaireService:
    """Get or create the singleton questionnaire service."""
    global _questionnaire_service

    if _questionnaire_service is None:
        _questionnaire_service = QuestionnaireService()

    return _questionnaire_service
