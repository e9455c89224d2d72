"""Verification state machine: validates merchant trust-status transitions.

The machine is pure and caller-agnostic. Document aggregation and bulk admin
actions both route every transition through it.
"""

from merchant_onboarding.domain.enums import VerificationStatus
from merchant_onboarding.domain.errors import InvalidStateTransition

S = VerificationStatus

# ---------------------------------------------------------------------------
# Transition map: from_status -> set of legal targets
# ---------------------------------------------------------------------------

TRANSITION_MAP: dict[VerificationStatus, set[VerificationStatus]] = {
    S.UNVERIFIED: {S.PENDING},
    S.PENDING: {S.VERIFIED, S.REJECTED},
    S.REJECTED: {S.PENDING},  # resubmission
    S.VERIFIED: {S.PENDING},  # re-review, e.g. new document uploaded
}

INITIAL_STATE = S.UNVERIFIED


def _coerce(status: VerificationStatus | str) -> VerificationStatus:
    return status if isinstance(status, VerificationStatus) else VerificationStatus(status)


class VerificationStateMachine:
    """Validates verification status transitions."""

    def validate_transition(
        self,
        current_status: VerificationStatus | str,
        target_status: VerificationStatus | str,
    ) -> bool:
        """Return True for a real transition, False for a self-transition no-op.

        Raise InvalidStateTransition for anything not in the transition map.
        """
        current = _coerce(current_status)
        target = _coerce(target_status)

        if current == target:
            return False

        if target not in TRANSITION_MAP.get(current, set()):
            raise InvalidStateTransition(current, target)
        return True

    def validate_path(
        self,
        current_status: VerificationStatus | str,
        steps: list[VerificationStatus],
    ) -> VerificationStatus:
        """Check a multi-step route hop by hop; return the final state.

        Used for compound moves such as unverified -> pending -> rejected,
        where each hop must be individually legal.
        """
        state = _coerce(current_status)
        for step in steps:
            self.validate_transition(state, step)
            state = step
        return state

    def get_allowed_transitions(
        self,
        current_status: VerificationStatus | str,
    ) -> list[VerificationStatus]:
        """Return legal next states, in declaration order of the enum."""
        allowed = TRANSITION_MAP.get(_coerce(current_status), set())
        return [s for s in VerificationStatus if s in allowed]
