"""Bulk verify/reject across a batch of merchants.

Each merchant is its own short transaction guarded by the version counter.
A failure on one id becomes that id's outcome and never aborts the batch.
Re-running the same request is safe: already-moved merchants report
skipped-already-in-state.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.app.config import get_settings
from merchant_onboarding.domain.enums import BulkAction, BulkOutcome, VerificationStatus
from merchant_onboarding.domain.errors import InvalidStateTransition, ValidationError
from merchant_onboarding.domain.schemas import BulkActionRequest, BulkActionResult
from merchant_onboarding.services.merchant_store import compare_and_set, load_merchant
from merchant_onboarding.services.verification_state_machine import VerificationStateMachine

logger = logging.getLogger(__name__)

V = VerificationStatus

ACTION_TARGETS: dict[BulkAction, VerificationStatus] = {
    BulkAction.VERIFY: V.VERIFIED,
    BulkAction.REJECT: V.REJECTED,
}

# action -> current status -> hops, each checked by the state machine.
# States missing here (e.g. unverified) have no admin route to the target.
ACTION_PATHS: dict[BulkAction, dict[VerificationStatus, list[VerificationStatus]]] = {
    BulkAction.VERIFY: {
        V.PENDING: [V.VERIFIED],
        V.REJECTED: [V.PENDING, V.VERIFIED],
    },
    BulkAction.REJECT: {
        V.PENDING: [V.REJECTED],
        V.VERIFIED: [V.PENDING, V.REJECTED],
    },
}


class BulkActionProcessor:
    """Applies one administrative transition to many merchants."""

    def __init__(
        self,
        db: AsyncSession,
        state_machine: VerificationStateMachine | None = None,
        max_retries: int | None = None,
    ):
        self.db = db
        self.state_machine = state_machine or VerificationStateMachine()
        self.max_retries = get_settings().bulk_max_retries if max_retries is None else max_retries

    async def apply_bulk_action(self, request: BulkActionRequest) -> BulkActionResult:
        if not request.merchant_ids:
            raise ValidationError("merchant_ids", "At least one merchant id is required")

        result = BulkActionResult()
        for merchant_id in request.merchant_ids:
            try:
                outcome = await self._apply_one(merchant_id, request.action)
            except Exception:
                await self.db.rollback()
                logger.exception("Bulk %s failed for merchant %s", request.action.value, merchant_id)
                outcome = BulkOutcome.SKIPPED_INVALID_TRANSITION

            result.outcomes[merchant_id] = outcome
            if outcome == BulkOutcome.APPLIED:
                result.modified_count += 1

        logger.info(
            "Bulk %s by %s: %d/%d merchants modified",
            request.action.value,
            request.actor or "unknown",
            result.modified_count,
            len(request.merchant_ids),
        )
        return result

    async def _apply_one(self, merchant_id: str, action: BulkAction) -> BulkOutcome:
        target = ACTION_TARGETS[action]

        for attempt in range(self.max_retries + 1):
            merchant = await load_merchant(self.db, merchant_id)
            if merchant is None:
                await self.db.commit()
                return BulkOutcome.SKIPPED_NOT_FOUND

            current = V(merchant.verification_status)
            if current == target:
                await self.db.commit()
                return BulkOutcome.SKIPPED_ALREADY_IN_STATE

            steps = ACTION_PATHS[action].get(current)
            try:
                if steps is None:
                    raise InvalidStateTransition(current, target)
                self.state_machine.validate_path(current, steps)
            except InvalidStateTransition as e:
                await self.db.commit()
                logger.info("Bulk %s skipped for %s: %s", action.value, merchant_id, e)
                return BulkOutcome.SKIPPED_INVALID_TRANSITION

            if await compare_and_set(
                self.db, merchant_id, merchant.version, verification_status=target.value
            ):
                await self.db.commit()
                logger.info(
                    "Bulk %s: merchant %s %s -> %s", action.value, merchant_id, current.value, target.value
                )
                return BulkOutcome.APPLIED

            await self.db.rollback()
            logger.info(
                "Bulk %s: merchant %s changed underneath us, retry %d/%d",
                action.value, merchant_id, attempt + 1, self.max_retries,
            )

        logger.warning("Bulk %s: giving up on merchant %s after version conflicts", action.value, merchant_id)
        return BulkOutcome.SKIPPED_INVALID_TRANSITION
