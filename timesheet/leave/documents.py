"""Document store seam — segmenting a request copies its documents onto each segment.

Only metadata rows are duplicated; every copy points at the same stored object.
"""

from __future__ import annotations

import logging
import uuid
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.leave.models import LeaveDocument

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    async def copy(
        self,
        db: AsyncSession,
        source_request_id: uuid.UUID,
        target_request_id: uuid.UUID,
    ) -> int: ...


class SqlDocumentStore:
    """Duplicates ``leave_documents`` rows from one request to another."""

    async def copy(
        self,
        db: AsyncSession,
        source_request_id: uuid.UUID,
        target_request_id: uuid.UUID,
    ) -> int:
        result = await db.execute(
            select(LeaveDocument).where(LeaveDocument.request_id == source_request_id)
        )
        documents = result.scalars().all()
        for document in documents:
            db.add(LeaveDocument(
                request_id=target_request_id,
                storage_key=document.storage_key,
                file_name=document.file_name,
                content_type=document.content_type,
            ))
        await db.flush()
        return len(documents)


async def copy_documents_safely(
    store: DocumentStore,
    db: AsyncSession,
    source_request_id: uuid.UUID,
    target_request_id: uuid.UUID,
) -> int:
    """Run a copy on its own savepoint; a failure is logged and reported as 0 copies."""
    try:
        async with db.begin_nested():
            return await store.copy(db, source_request_id, target_request_id)
    except Exception:
        logger.exception(
            "Copying documents from %s to %s failed; segment kept without documents",
            source_request_id, target_request_id,
        )
        return 0


default_document_store = SqlDocumentStore()
