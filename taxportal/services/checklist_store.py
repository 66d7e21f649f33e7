"""Per-client checklist of required documents."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.config import settings
from taxportal.models.db_models import RequiredDocument
from taxportal.services.requirement_rules import DocumentRequirement
from taxportal.services.user_locks import checklist_lock

logger = logging.getLogger(__name__)


@dataclass
class RegenerationResult:
    """Outcome of reconciling a checklist against a new requirement list."""

    added: int = 0
    removed: int = 0
    kept: int = 0
    items: List[RequiredDocument] = field(default_factory=list)


@dataclass
class ChecklistProgress:
    """Completion summary for a set of checklist items."""

    total: int
    uploaded: int
    not_applicable: int

    @property
    def satisfied(self) -> int:
        return self.uploaded + self.not_applicable

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.satisfied >= self.total


def item_key(item: RequiredDocument) -> Tuple[str, str]:
    return (item.document_type, item.description)


class ChecklistStore:
    """Store and reconcile each client's required-document checklist."""

    async def list_items(self, db: AsyncSession, user_id: UUID) -> List[RequiredDocument]:
        """Get a user's checklist in display order."""
        result = await db.execute(
            select(RequiredDocument)
            .where(RequiredDocument.user_id == user_id)
            .order_by(RequiredDocument.sort_order)
        )
        return list(result.scalars().all())

    async def get_item(
        self, db: AsyncSession, user_id: UUID, item_id: UUID
    ) -> Optional[RequiredDocument]:
        """Get one item, or None if it does not exist or belongs to someone else."""
        result = await db.execute(
            select(RequiredDocument).where(
                RequiredDocument.id == item_id,
                RequiredDocument.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def regenerate(
        self,
        db: AsyncSession,
        user_id: UUID,
        requirements: Sequence[DocumentRequirement],
        personal_return_id: Optional[UUID],
        business_return_id: Optional[UUID],
    ) -> RegenerationResult:
        """
        Make the user's checklist match a requirement list.

        Items are keyed by (document_type, description). Items whose key is no
        longer required are deleted, new keys are inserted, and kept items
        retain their upload link and not-applicable flag. Every item gets its
        return link and display position refreshed.

        Args:
            db: Database session
            user_id: Checklist owner
            requirements: Output of the requirement rule set
            personal_return_id: Return for non-business items (None = unlinked)
            business_return_id: Return for business items (None = unlinked)

        Returns:
            RegenerationResult with counts and the resulting items in order
        """
        async with checklist_lock(db, user_id):
            existing = await self.list_items(db, user_id)
            by_key = {item_key(item): item for item in existing}
            result = RegenerationResult()

            wanted: Dict[Tuple[str, str], DocumentRequirement] = {}
            for requirement in requirements:
                wanted.setdefault(requirement.key, requirement)

            for key, item in list(by_key.items()):
                if key not in wanted:
                    await db.delete(item)
                    del by_key[key]
                    result.removed += 1

            await db.flush()

            for position, (key, requirement) in enumerate(wanted.items()):
                return_id = business_return_id if requirement.is_business_doc else personal_return_id
                item = by_key.get(key)
                if item is not None:
                    item.return_id = return_id
                    item.sort_order = position
                    result.kept += 1
                else:
                    item = RequiredDocument(
                        user_id=user_id,
                        return_id=return_id,
                        document_type=requirement.type,
                        description=requirement.description,
                        sort_order=position,
                        is_uploaded=False,
                        marked_not_applicable=False,
                        tax_year=settings.TAX_YEAR,
                    )
                    db.add(item)
                    result.added += 1
                result.items.append(item)

            await db.commit()

        logger.info(
            f"Checklist regenerated for user {user_id}: "
            f"{result.added} added, {result.removed} removed, {result.kept} kept"
        )
        return result

    async def mark_not_applicable(
        self, db: AsyncSession, user_id: UUID, item_id: UUID, value: bool
    ) -> Optional[RequiredDocument]:
        """
        Set or clear the not-applicable flag on one of the user's items.

        Returns:
            The updated item, or None when the item is not the user's
        """
        async with checklist_lock(db, user_id):
            item = await self.get_item(db, user_id, item_id)
            if item is None:
                await db.rollback()
                return None

            item.marked_not_applicable = bool(value)
            await db.commit()
            await db.refresh(item)

        logger.info(f"Checklist item {item_id} marked not applicable={bool(value)}")
        return item

    async def unlink_document(self, db: AsyncSession, document_id: UUID) -> None:
        """Detach a document from any item pointing at it. Caller commits."""
        await db.execute(
            update(RequiredDocument)
            .where(RequiredDocument.document_id == document_id)
            .values(document_id=None, is_uploaded=False)
        )

    @staticmethod
    def progress(items: Sequence[RequiredDocument]) -> ChecklistProgress:
        return ChecklistProgress(
            total=len(items),
            uploaded=sum(1 for item in items if item.is_uploaded),
            not_applicable=sum(
                1 for item in items if item.marked_not_applicable and not item.is_uploaded
            ),
        )


_checklist_store: Optional[ChecklistStore] = None


def get_checklist_store() -> ChecklistStore:
    """Get or create the singleton checklist store."""
    global _checklist_store

    if _checklist_store is None:
        _checklist_store = ChecklistStore()

    return _checklist_store
