"""Shared fixtures: in-memory database, users, returns and uploads."""
import io
import os
import tempfile
from types import SimpleNamespace
from unittest.mock import MagicMock

# Configure before any taxportal import reads settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="taxportal-uploads-")

import pytest
from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from starlette.datastructures import Headers

from taxportal.database import Base
from taxportal.models.db_models import ReturnType, TaxReturn, User
from taxportal.services.file_handler import FileHandler
from taxportal.services.user_locks import clear_user_locks
from taxportal.tasks import portal_tasks


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_user_locks():
    clear_user_locks()
    yield
    clear_user_locks()


# =============================================================================
# BACKGROUND TASKS
# =============================================================================

@pytest.fixture(autouse=True)
def enqueued_tasks(monkeypatch):
    """Replace the Celery tasks so nothing reaches a broker; inspect their apply_async."""
    tasks = SimpleNamespace(verify_document=MagicMock(), auto_reply=MagicMock())
    monkeypatch.setattr(portal_tasks, "verify_document_task", tasks.verify_document)
    monkeypatch.setattr(portal_tasks, "auto_reply_task", tasks.auto_reply)
    return tasks


# =============================================================================
# DOMAIN FIXTURES
# =============================================================================

@pytest.fixture
async def client_user(db_session: AsyncSession) -> User:
    user = User(email="client@example.com", first_name="Casey", last_name="Client")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    user = User(email="other@example.com", first_name="Olive", last_name="Other")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def staff_user(db_session: AsyncSession) -> User:
    user = User(email="staff@example.com", first_name="Sam", last_name="Staff", is_admin=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def personal_return(db_session: AsyncSession, client_user: User) -> TaxReturn:
    tax_return = TaxReturn(
        user_id=client_user.id,
        return_type=ReturnType.PERSONAL,
        name="Personal Return",
        tax_year=2025,
    )
    db_session.add(tax_return)
    await db_session.commit()
    await db_session.refresh(tax_return)
    return tax_return


@pytest.fixture
def file_handler(tmp_path) -> FileHandler:
    return FileHandler(upload_dir=tmp_path, max_file_size=1024 * 1024)


def make_upload(
    filename: str,
    content: bytes = b"%PDF-1.4 test document",
    content_type: str = "application/pdf",
) -> UploadFile:
    """Build an in-memory UploadFile."""
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def upload():
    """Factory fixture for in-memory uploads."""
    return make_upload
