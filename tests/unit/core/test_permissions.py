"""Unit tests for challenge permission resolution and the approval predicate."""

import itertools
import uuid
from types import SimpleNamespace

import pytest

from app.core.exceptions import AuthorizationError
from app.core.permissions import (
    CANNOT_REVIEW_MESSAGE,
    SELF_APPROVAL_MESSAGE,
    ChallengeRoleSignals,
    can_approve,
    ensure_can_review,
    resolve_challenge_permissions,
    resolve_from_signals,
)

CHALLENGE_X = uuid.uuid4()
CHALLENGE_Y = uuid.uuid4()


def membership(role: str) -> SimpleNamespace:
    return SimpleNamespace(role=role)


def assignment(challenge_id: uuid.UUID = CHALLENGE_X) -> SimpleNamespace:
    return SimpleNamespace(challenge_id=challenge_id)


def enrollment(status: str) -> SimpleNamespace:
    return SimpleNamespace(status=status)


class TestScenarios:
    def test_admin_without_assignment_or_enrollment(self):
        perms = resolve_challenge_permissions(membership("ADMIN"))

        assert perms.is_admin is True
        assert perms.is_manager is True
        assert perms.is_participant is False
        assert perms.can_approve_submissions is True
        assert perms.role == "Admin"

    def test_enrolled_participant(self):
        perms = resolve_challenge_permissions(
            membership("PARTICIPANT"), enrollment=enrollment("ENROLLED")
        )

        assert perms.is_manager is False
        assert perms.is_participant is True
        assert perms.can_approve_submissions is False
        assert perms.can_enroll is False
        assert perms.role == "Participant"

    def test_assigned_manager_enrolled_in_same_challenge(self):
        perms = resolve_challenge_permissions(
            membership("MANAGER"),
            assignment(CHALLENGE_X),
            enrollment("ENROLLED"),
            challenge_id=CHALLENGE_X,
            manager_scoped=True,
        )

        assert perms.role == "Managing & Enrolled"
        assert perms.is_manager is True
        assert perms.is_participant is True
        assert perms.can_approve_submissions is True

    def test_scoped_manager_has_no_rights_in_unassigned_challenge(self):
        perms = resolve_challenge_permissions(
            membership("MANAGER"),
            assignment(CHALLENGE_X),
            None,
            challenge_id=CHALLENGE_Y,
            manager_scoped=True,
        )

        assert perms.is_manager is False
        assert perms.can_approve_submissions is False
        assert perms.role == "Member"


class TestComposition:
    def test_assignment_alone_grants_challenge_manager(self):
        perms = resolve_challenge_permissions(
            membership("PARTICIPANT"), assignment(), challenge_id=CHALLENGE_X
        )
        assert perms.is_manager is True
        assert perms.role == "Challenge Manager"

    def test_assignment_for_other_challenge_is_ignored(self):
        perms = resolve_challenge_permissions(
            membership("PARTICIPANT"), assignment(CHALLENGE_Y), challenge_id=CHALLENGE_X
        )
        assert perms.is_manager is False
        assert perms.can_approve_submissions is False

    def test_unscoped_manager_role_is_workspace_wide(self):
        perms = resolve_challenge_permissions(membership("MANAGER"))
        assert perms.is_manager is True
        assert perms.role == "Manager"

    def test_admin_enrolled_label(self):
        perms = resolve_challenge_permissions(membership("ADMIN"), enrollment=enrollment("COMPLETED"))
        assert perms.role == "Admin & Enrolled"
        assert perms.is_participant is True

    def test_invited_is_not_participating(self):
        perms = resolve_challenge_permissions(
            membership("PARTICIPANT"), enrollment=enrollment("INVITED")
        )
        assert perms.is_participant is False
        assert perms.can_enroll is True
        assert perms.role == "Invited"

    def test_withdrawn_may_enroll_again(self):
        perms = resolve_challenge_permissions(
            membership("PARTICIPANT"), enrollment=enrollment("WITHDRAWN")
        )
        assert perms.is_participant is True
        assert perms.can_enroll is True

    def test_self_enrollment_disabled_blocks_enroll(self):
        perms = resolve_challenge_permissions(
            membership("PARTICIPANT"), self_enrollment_allowed=False
        )
        assert perms.can_enroll is False

    def test_to_dict_uses_camel_case(self):
        data = resolve_challenge_permissions(membership("ADMIN")).to_dict()
        assert data["canApproveSubmissions"] is True
        assert data["isAdmin"] is True
        assert "full_control" in data["permissions"]

    def test_resolve_from_signals_matches_direct_call(self):
        signals = ChallengeRoleSignals(
            membership=membership("MANAGER"),
            assignment=assignment(CHALLENGE_X),
            enrollment=None,
            manager_scoped=True,
        )
        assert resolve_from_signals(signals, CHALLENGE_X).can_approve_submissions is True
        assert resolve_from_signals(signals, CHALLENGE_Y).can_approve_submissions is False


class TestApprovalImpliesElevatedRole:
    """can_approve_submissions must never be granted without admin or manager standing."""

    @pytest.mark.parametrize(
        "role,assigned_to,status,scoped",
        list(
            itertools.product(
                ["ADMIN", "MANAGER", "PARTICIPANT"],
                [None, CHALLENGE_X, CHALLENGE_Y],
                [None, "INVITED", "ENROLLED", "WITHDRAWN", "COMPLETED"],
                [False, True],
            )
        ),
    )
    def test_every_combination(self, role, assigned_to, status, scoped):
        perms = resolve_challenge_permissions(
            membership(role),
            assignment(assigned_to) if assigned_to else None,
            enrollment(status) if status else None,
            challenge_id=CHALLENGE_X,
            manager_scoped=scoped,
        )
        if perms.can_approve_submissions:
            assert perms.is_admin or perms.is_manager


class TestCanApprove:
    def setup_method(self):
        self.owner_id = uuid.uuid4()
        self.reviewer_id = uuid.uuid4()

    def test_admin_cannot_approve_own_submission(self):
        perms = resolve_challenge_permissions(membership("ADMIN"))
        assert can_approve(perms, self.owner_id, self.owner_id) is False

    def test_manager_can_approve_others(self):
        perms = resolve_challenge_permissions(membership("MANAGER"))
        assert can_approve(perms, self.owner_id, self.reviewer_id) is True

    def test_participant_cannot_approve(self):
        perms = resolve_challenge_permissions(membership("PARTICIPANT"))
        assert can_approve(perms, self.owner_id, self.reviewer_id) is False

    def test_ensure_can_review_self_message(self):
        perms = resolve_challenge_permissions(membership("ADMIN"))
        with pytest.raises(AuthorizationError) as exc_info:
            ensure_can_review(perms, self.owner_id, self.owner_id)
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == SELF_APPROVAL_MESSAGE

    def test_ensure_can_review_capability_message(self):
        perms = resolve_challenge_permissions(membership("PARTICIPANT"))
        with pytest.raises(AuthorizationError) as exc_info:
            ensure_can_review(perms, self.owner_id, self.reviewer_id)
        assert exc_info.value.message == CANNOT_REVIEW_MESSAGE
