"""Verification documents: submission, review, soft deletion, listing.

Every status-changing call recomputes the owner's aggregate in the same
transaction, so a document change and its effect on the merchant commit
together or not at all.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.domain.enums import DocumentStatus, DocumentType
from merchant_onboarding.domain.errors import (
    DocumentNotFound,
    MerchantNotFound,
    OnboardingError,
    ValidationError,
)
from merchant_onboarding.domain.models import Document, utcnow
from merchant_onboarding.domain.schemas import (
    DocumentBulkReviewResult,
    DocumentReviewFailure,
    DocumentStats,
)
from merchant_onboarding.services.document_status_aggregator import (
    AggregationResult,
    DocumentStatusAggregator,
)
from merchant_onboarding.services.merchant_store import load_merchant

logger = logging.getLogger(__name__)


class DocumentService:
    def __init__(self, db: AsyncSession, aggregator: DocumentStatusAggregator | None = None):
        self.db = db
        self.aggregator = aggregator or DocumentStatusAggregator(db)

    async def _get_active(self, document_id: str) -> Document:
        result = await self.db.execute(
            select(Document)
            .where(Document.id == document_id, Document.is_active.is_(True))
            .execution_options(populate_existing=True)
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    async def _commit_with_aggregate(self, merchant_id: str, submission: bool = False) -> AggregationResult:
        try:
            await self.db.flush()
            outcome = await self.aggregator.recompute(merchant_id, submission=submission)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return outcome

    async def submit_document(
        self,
        merchant_id: str,
        document_type: DocumentType | str,
        document_name: str | None = None,
    ) -> Document:
        """Record a new document awaiting review."""
        if await load_merchant(self.db, merchant_id) is None:
            raise MerchantNotFound(merchant_id)

        doc_type = DocumentType(document_type)
        document = Document(
            merchant_id=merchant_id,
            document_type=doc_type.value,
            document_name=(document_name or "").strip()
            or doc_type.value.replace("_", " ").title(),
            status=DocumentStatus.PENDING_REVIEW.value,
            uploaded_at=utcnow(),
            is_active=True,
        )
        self.db.add(document)
        await self._commit_with_aggregate(merchant_id, submission=True)

        logger.info("Document %s (%s) submitted for merchant %s", document.id, doc_type.value, merchant_id)
        return document

    async def review_document(
        self,
        document_id: str,
        status: DocumentStatus | str,
        reviewer: str | None,
        admin_notes: str | None = None,
    ) -> Document:
        """Mark a document complete or rejected."""
        new_status = DocumentStatus(status)
        if new_status == DocumentStatus.PENDING_REVIEW:
            raise ValidationError("status", "A review must resolve to complete or rejected")

        document = await self._get_active(document_id)
        document.status = new_status.value
        document.reviewed_by = reviewer
        document.reviewed_at = utcnow()
        if admin_notes is not None:
            document.admin_notes = admin_notes
        await self._commit_with_aggregate(document.merchant_id)

        logger.info("Document %s reviewed as %s by %s", document_id, new_status.value, reviewer)
        return document

    async def bulk_review_documents(
        self,
        document_ids: list[str],
        status: DocumentStatus | str,
        reviewer: str | None,
        admin_notes: str | None = None,
    ) -> DocumentBulkReviewResult:
        """Review many documents with one decision.

        Each document commits on its own together with its owner's aggregate;
        a failing id is reported and never stops the rest.
        """
        if not document_ids:
            raise ValidationError("document_ids", "At least one document id is required")
        new_status = DocumentStatus(status)
        if new_status == DocumentStatus.PENDING_REVIEW:
            raise ValidationError("status", "A review must resolve to complete or rejected")

        result = DocumentBulkReviewResult()
        for document_id in dict.fromkeys(document_ids):
            try:
                await self.review_document(document_id, new_status, reviewer, admin_notes)
            except OnboardingError as e:
                result.failed.append(
                    DocumentReviewFailure(document_id=document_id, code=e.code, message=e.message)
                )
                continue
            except Exception as e:
                await self.db.rollback()
                logger.exception("Bulk review failed for document %s", document_id)
                result.failed.append(
                    DocumentReviewFailure(document_id=document_id, code="review_failed", message=str(e))
                )
                continue
            result.reviewed.append(document_id)

        result.modified_count = len(result.reviewed)
        logger.info(
            "Bulk review by %s: %d/%d documents marked %s",
            reviewer or "unknown", result.modified_count, len(result.reviewed) + len(result.failed), new_status.value,
        )
        return result

    async def delete_document(self, document_id: str) -> Document:
        """Soft delete; the document no longer counts toward the aggregate."""
        document = await self._get_active(document_id)
        document.is_active = False
        await self._commit_with_aggregate(document.merchant_id)

        logger.info("Document %s deleted", document_id)
        return document

    async def get_document(self, document_id: str) -> Document:
        return await self._get_active(document_id)

    async def list_documents(self, merchant_id: str) -> list[Document]:
        if await load_merchant(self.db, merchant_id) is None:
            raise MerchantNotFound(merchant_id)
        result = await self.db.execute(
            select(Document)
            .where(Document.merchant_id == merchant_id, Document.is_active.is_(True))
            .order_by(Document.uploaded_at.desc())
        )
        return list(result.scalars().all())

    async def list_all_documents(
        self,
        status: DocumentStatus | str | None = None,
        document_type: DocumentType | str | None = None,
    ) -> list[Document]:
        query = select(Document).where(Document.is_active.is_(True))
        if status:
            query = query.where(Document.status == DocumentStatus(status).value)
        if document_type:
            query = query.where(Document.document_type == DocumentType(document_type).value)
        result = await self.db.execute(query.order_by(Document.uploaded_at.desc()))
        return list(result.scalars().all())

    async def document_stats(self) -> DocumentStats:
        result = await self.db.execute(
            select(Document.status, func.count(Document.id))
            .where(Document.is_active.is_(True))
            .group_by(Document.status)
        )
        counts = {row[0]: row[1] for row in result.all()}
        return DocumentStats(
            total=sum(counts.values()),
            pending_review=counts.get(DocumentStatus.PENDING_REVIEW.value, 0),
            complete=counts.get(DocumentStatus.COMPLETE.value, 0),
            rejected=counts.get(DocumentStatus.REJECTED.value, 0),
        )
