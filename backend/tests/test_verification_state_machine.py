"""Unit tests for the VerificationStateMachine."""

import pytest

from merchant_onboarding.domain.enums import VerificationStatus
from merchant_onboarding.domain.errors import InvalidStateTransition
from merchant_onboarding.services.verification_state_machine import (
    INITIAL_STATE,
    TRANSITION_MAP,
    VerificationStateMachine,
)

S = VerificationStatus


@pytest.fixture
def sm():
    return VerificationStateMachine()


# ---------------------------------------------------------------------------
# Transition map coverage
# ---------------------------------------------------------------------------


class TestValidTransitions:
    """Every transition defined in TRANSITION_MAP should succeed."""

    @pytest.mark.parametrize(
        "from_status,to_status",
        [(from_s, to_s) for from_s, targets in TRANSITION_MAP.items() for to_s in targets],
    )
    def test_all_valid_transitions(self, sm, from_status, to_status):
        assert sm.validate_transition(from_status, to_status) is True

    def test_accepts_plain_strings(self, sm):
        assert sm.validate_transition("pending", "verified") is True


class TestInvalidTransitions:
    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (S.UNVERIFIED, S.VERIFIED),
            (S.UNVERIFIED, S.REJECTED),
            (S.REJECTED, S.VERIFIED),
            (S.VERIFIED, S.REJECTED),
            (S.VERIFIED, S.UNVERIFIED),
            (S.PENDING, S.UNVERIFIED),
        ],
    )
    def test_rejected(self, sm, from_status, to_status):
        with pytest.raises(InvalidStateTransition) as exc_info:
            sm.validate_transition(from_status, to_status)
        assert exc_info.value.current_status == from_status
        assert exc_info.value.target_status == to_status

    def test_unknown_status_string_fails(self, sm):
        with pytest.raises(ValueError):
            sm.validate_transition("archived", "pending")


class TestSelfTransitions:
    """Same-state requests are no-ops, not errors."""

    @pytest.mark.parametrize("status", list(S))
    def test_self_transition_is_noop(self, sm, status):
        assert sm.validate_transition(status, status) is False


# ---------------------------------------------------------------------------
# Paths and allowed transitions
# ---------------------------------------------------------------------------


class TestValidatePath:
    def test_two_hop_path(self, sm):
        assert sm.validate_path(S.UNVERIFIED, [S.PENDING, S.REJECTED]) == S.REJECTED

    def test_empty_path_returns_current(self, sm):
        assert sm.validate_path(S.VERIFIED, []) == S.VERIFIED

    def test_illegal_hop_fails_whole_path(self, sm):
        with pytest.raises(InvalidStateTransition):
            sm.validate_path(S.UNVERIFIED, [S.VERIFIED])


class TestAllowedTransitions:
    def test_initial_state(self):
        assert INITIAL_STATE == S.UNVERIFIED

    def test_pending(self, sm):
        assert sm.get_allowed_transitions(S.PENDING) == [S.VERIFIED, S.REJECTED]

    @pytest.mark.parametrize("status", [S.UNVERIFIED, S.REJECTED, S.VERIFIED])
    def test_single_exit_to_pending(self, sm, status):
        assert sm.get_allowed_transitions(status) == [S.PENDING]
