"""Document status aggregation and the automatic verification moves it triggers.

Precedence over a merchant's active documents:
    any rejected        -> rejected
    any pending_review  -> pending_review
    all complete        -> complete
    no documents        -> none
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.app.config import get_settings
from merchant_onboarding.domain.enums import (
    AggregateDocumentStatus,
    DocumentStatus,
    VerificationStatus,
)
from merchant_onboarding.domain.errors import (
    ConcurrentModification,
    InvalidStateTransition,
    MerchantNotFound,
)
from merchant_onboarding.domain.models import Document
from merchant_onboarding.services.merchant_store import compare_and_set, load_merchant
from merchant_onboarding.services.verification_state_machine import VerificationStateMachine

logger = logging.getLogger(__name__)

V = VerificationStatus
AG = AggregateDocumentStatus

# aggregate -> current verification status -> hops to request.
# These never move a merchant off an admin decision (verified or rejected).
AUTOMATIC_PATHS: dict[AggregateDocumentStatus, dict[VerificationStatus, list[VerificationStatus]]] = {
    AG.REJECTED: {
        V.PENDING: [V.REJECTED],
        V.UNVERIFIED: [V.PENDING, V.REJECTED],
    },
    AG.PENDING_REVIEW: {
        V.UNVERIFIED: [V.PENDING],
    },
    # Only a pending merchant is auto-verified; an explicit rejection stands
    AG.COMPLETE: {
        V.PENDING: [V.VERIFIED],
    },
    AG.NONE: {},
}

# Applied only when the aggregate has just changed into the key status
ENTRY_PATHS: dict[AggregateDocumentStatus, dict[VerificationStatus, list[VerificationStatus]]] = {
    # A verified merchant whose documents turn rejected goes back for re-review
    AG.REJECTED: {V.VERIFIED: [V.PENDING]},
}

# Applied only when a new document was just submitted (resubmission / re-review)
SUBMISSION_PATHS: dict[AggregateDocumentStatus, dict[VerificationStatus, list[VerificationStatus]]] = {
    AG.PENDING_REVIEW: {
        V.VERIFIED: [V.PENDING],
        V.REJECTED: [V.PENDING],
    },
}


def aggregate_document_status(statuses: Iterable[DocumentStatus | str]) -> AggregateDocumentStatus:
    """Pure precedence rule; order of the input does not matter."""
    seen = {DocumentStatus(s) for s in statuses}
    if not seen:
        return AG.NONE
    if DocumentStatus.REJECTED in seen:
        return AG.REJECTED
    if DocumentStatus.PENDING_REVIEW in seen:
        return AG.PENDING_REVIEW
    return AG.COMPLETE


@dataclass
class AggregationResult:
    merchant_id: str
    document_status: AggregateDocumentStatus
    verification_status: VerificationStatus
    transitioned: bool


class DocumentStatusAggregator:
    """Recomputes a merchant's document_status and requests status moves.

    Writes go through the merchant version check; the caller owns the
    transaction (document change + aggregate commit together).
    """

    def __init__(
        self,
        db: AsyncSession,
        state_machine: VerificationStateMachine | None = None,
        max_retries: int | None = None,
    ):
        self.db = db
        self.state_machine = state_machine or VerificationStateMachine()
        self.max_retries = get_settings().bulk_max_retries if max_retries is None else max_retries

    async def _active_statuses(self, merchant_id: str) -> list[str]:
        result = await self.db.execute(
            select(Document.status).where(
                Document.merchant_id == merchant_id,
                Document.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    def _target_for(
        self,
        aggregate: AggregateDocumentStatus,
        previous: str,
        current: VerificationStatus,
        submission: bool,
    ) -> VerificationStatus:
        steps = AUTOMATIC_PATHS[aggregate].get(current)
        if not steps and aggregate.value != previous:
            steps = ENTRY_PATHS.get(aggregate, {}).get(current)
        if not steps and submission:
            steps = SUBMISSION_PATHS.get(aggregate, {}).get(current)
        if not steps:
            return current
        try:
            return self.state_machine.validate_path(current, steps)
        except InvalidStateTransition as e:
            logger.warning("Skipping automatic transition: %s", e)
            return current

    async def recompute(self, merchant_id: str, submission: bool = False) -> AggregationResult:
        """Refresh document_status and apply the automatic verification move.

        ``submission`` marks a recompute caused by a newly submitted document,
        the only event that reopens a verified or rejected merchant while
        documents are awaiting review.
        """
        for attempt in range(self.max_retries + 1):
            merchant = await load_merchant(self.db, merchant_id)
            if merchant is None:
                raise MerchantNotFound(merchant_id)

            aggregate = aggregate_document_status(await self._active_statuses(merchant_id))
            current = V(merchant.verification_status)
            target = self._target_for(aggregate, merchant.document_status, current, submission)

            if aggregate.value == merchant.document_status and target == current:
                return AggregationResult(merchant_id, aggregate, current, False)

            if await compare_and_set(
                self.db,
                merchant_id,
                merchant.version,
                document_status=aggregate.value,
                verification_status=target.value,
            ):
                if target != current:
                    logger.info(
                        "Merchant %s: documents %s, verification %s -> %s",
                        merchant_id, aggregate.value, current.value, target.value,
                    )
                return AggregationResult(merchant_id, aggregate, target, target != current)

            logger.info(
                "Aggregate for merchant %s lost version race (attempt %d)", merchant_id, attempt + 1
            )

        raise ConcurrentModification(merchant_id)
