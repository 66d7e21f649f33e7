"""
Delayed portal tasks: simulated document verification and the automatic
message acknowledgement.

Both are enqueued only after the change that triggers them has committed,
and both are idempotent:

- ``verify_document`` only moves a document from processing to verified
- ``auto_reply`` uses a reply id chosen at enqueue time as the message id
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable
from uuid import UUID

from kombu.exceptions import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from taxportal.config import settings
from taxportal.models.db_models import Document, DocumentStatus, Message, MessageType
from taxportal.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

VERIFY_DOCUMENT_TASK = "taxportal.tasks.verify_document"
AUTO_REPLY_TASK = "taxportal.tasks.auto_reply"

AUTO_REPLY_TEXT = (
    "Thank you for your message. Our team will review it and get back to you within 24 hours."
)


# =============================================================================
# TASK BODIES
# =============================================================================

async def verify_document(db: AsyncSession, document_id: UUID) -> bool:
    """Finish the simulated verification step. Returns True if the status changed."""
    document = await db.get(Document, document_id)
    if document is None:
        logger.info(f"Document {document_id} deleted before verification")
        return False
    if document.status != DocumentStatus.PROCESSING:
        return False
    document.status = DocumentStatus.VERIFIED
    return True


async def deliver_auto_reply(db: AsyncSession, user_id: UUID, reply_id: UUID) -> bool:
    """Post the staff acknowledgement once. Returns False if it was already posted."""
    if await db.get(Message, reply_id) is not None:
        logger.info(f"Auto-reply {reply_id} already posted")
        return False

    db.add(
        Message(
            id=reply_id,
            user_id=user_id,
            content=AUTO_REPLY_TEXT,
            message_type=MessageType.TEXT,
            is_from_client=False,
            is_read=False,
        )
    )
    return True


# =============================================================================
# WORKER PLUMBING
# =============================================================================

def _run_async(coro):
    """Run a coroutine from the synchronous worker, even if a loop is already running."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    import concurrent.futures

    with concurrent.futures.ThreadPoolExecutor() as executor:
        return executor.submit(asyncio.run, coro).result()


async def _session_scope(body: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    # Each task run gets its own event loop, so pooled connections cannot be reused
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as db:
            result = await body(db, *args)
            await db.commit()
            return result
    finally:
        await engine.dispose()


def run_in_session(body: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    """Run a task body in a fresh session and commit."""
    return _run_async(_session_scope(body, *args))


# =============================================================================
# TASKS
# =============================================================================

@celery_app.task(
    bind=True,
    name=VERIFY_DOCUMENT_TASK,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=settings.TASK_RETRY_BACKOFF_MAX,
    retry_jitter=True,
    max_retries=settings.TASK_MAX_RETRIES,
)
def verify_document_task(self, document_id: str) -> bool:
    changed = run_in_session(verify_document, UUID(document_id))
    logger.info(f"Verification of document {document_id} done (changed={changed})")
    return changed


@celery_app.task(
    bind=True,
    name=AUTO_REPLY_TASK,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=settings.TASK_RETRY_BACKOFF_MAX,
    retry_jitter=True,
    max_retries=settings.TASK_MAX_RETRIES,
)
def auto_reply_task(self, user_id: str, reply_id: str) -> bool:
    return run_in_session(deliver_auto_reply, UUID(user_id), UUID(reply_id))


# =============================================================================
# ENQUEUEING (call after commit)
# =============================================================================

def schedule_document_verification(document_id: UUID) -> bool:
    """
    Enqueue verification of a committed document.

    Returns:
        False if the broker is unreachable; the document then stays
        ``processing`` until staff review it
    """
    try:
        verify_document_task.apply_async(
            args=[str(document_id)],
            countdown=settings.DOCUMENT_VERIFICATION_DELAY_SECONDS,
        )
    except OperationalError as e:
        logger.error(f"Could not enqueue verification of document {document_id}: {e}")
        return False
    return True


def schedule_auto_reply(user_id: UUID, reply_id: UUID) -> bool:
    """Enqueue the acknowledgement for a committed client message."""
    try:
        auto_reply_task.apply_async(
            args=[str(user_id), str(reply_id)],
            countdown=settings.AUTO_REPLY_DELAY_SECONDS,
            task_id=str(reply_id),
        )
    except OperationalError as e:
        logger.error(f"Could not enqueue auto-reply {reply_id}: {e}")
        return False
    return True
