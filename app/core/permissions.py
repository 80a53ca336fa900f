"""Challenge-scoped permission resolution.

Composes a user's effective capabilities for one challenge from three
independently stored role signals:

- workspace membership (mandatory; absence means no access at all)
- challenge manager assignment (optional)
- challenge enrollment (optional)

Composition is additive: a user can manage a challenge through an
assignment and participate in it through an enrollment at the same time.
Both capability sets are OR-combined, neither overrides the other.

resolve_challenge_permissions() is pure. Callers fetch the signals fresh
for every gated mutation (see role_ops.get_challenge_signals) and never
reuse a result across requests.
"""

import uuid as uuid_pkg
from dataclasses import dataclass
from typing import Any, Protocol

from app.core.exceptions import AuthorizationError
from app.models.challenge import EnrollmentStatus
from app.models.workspace import WorkspaceRole

# Enrollment statuses that count as having actively participated.
# INVITED alone does not.
PARTICIPATING_STATUSES = frozenset(
    {
        EnrollmentStatus.ENROLLED.value,
        EnrollmentStatus.COMPLETED.value,
        EnrollmentStatus.WITHDRAWN.value,
    }
)

# Statuses that block a new self-enrollment
ACTIVE_ENROLLMENT_STATUSES = frozenset(
    {EnrollmentStatus.ENROLLED.value, EnrollmentStatus.COMPLETED.value}
)

SELF_APPROVAL_MESSAGE = "You cannot approve your own submission"
CANNOT_REVIEW_MESSAGE = "You do not have permission to review submissions for this challenge"


class MembershipSignal(Protocol):
    role: str


class AssignmentSignal(Protocol):
    challenge_id: uuid_pkg.UUID


class EnrollmentSignal(Protocol):
    status: str


@dataclass(frozen=True)
class EffectivePermissions:
    """Immutable capability set for one (user, challenge) pair."""

    is_admin: bool
    is_manager: bool
    is_participant: bool
    can_manage: bool
    can_approve_submissions: bool
    can_enroll: bool
    role: str
    permissions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "isAdmin": self.is_admin,
            "isManager": self.is_manager,
            "isParticipant": self.is_participant,
            "canManage": self.can_manage,
            "canApproveSubmissions": self.can_approve_submissions,
            "canEnroll": self.can_enroll,
            "role": self.role,
            "permissions": list(self.permissions),
        }


@dataclass(frozen=True)
class ChallengeRoleSignals:
    """The three role signals for a (user, challenge) pair, as read from the Role Store."""

    membership: MembershipSignal
    assignment: AssignmentSignal | None = None
    enrollment: EnrollmentSignal | None = None
    self_enrollment_allowed: bool = True
    manager_scoped: bool = False


def _role_label(
    is_admin: bool,
    workspace_manager: bool,
    assigned: bool,
    is_participant: bool,
    invited: bool,
) -> str:
    if is_admin:
        return "Admin & Enrolled" if is_participant else "Admin"
    if (workspace_manager or assigned) and is_participant:
        return "Managing & Enrolled"
    if assigned:
        return "Challenge Manager"
    if workspace_manager:
        return "Manager"
    if is_participant:
        return "Participant"
    if invited:
        return "Invited"
    return "Member"


def _permission_names(is_admin: bool, manager: bool, participant: bool) -> tuple[str, ...]:
    names: list[str] = ["view_challenge"]
    if is_admin:
        names.append("full_control")
    if manager:
        names.extend(["manage_challenge", "approve_submissions", "view_all"])
    if participant:
        names.extend(["participate", "submit_activities"])
    return tuple(names)


def resolve_challenge_permissions(
    membership: MembershipSignal,
    assignment: AssignmentSignal | None = None,
    enrollment: EnrollmentSignal | None = None,
    *,
    challenge_id: uuid_pkg.UUID | None = None,
    self_enrollment_allowed: bool = True,
    manager_scoped: bool = False,
) -> EffectivePermissions:
    """
    Resolve effective permissions for one challenge.

    Args:
        membership: The user's workspace membership. Required.
        assignment: Manager assignment for this challenge, if any.
        enrollment: Enrollment in this challenge, if any.
        challenge_id: When given, an assignment for a different challenge is ignored.
        self_enrollment_allowed: Whether workspace/challenge rules allow self-enrollment.
        manager_scoped: The user holds the MANAGER role but is restricted to the
            challenges they are assigned to, so the role alone grants nothing here.
    """
    if assignment is not None and challenge_id is not None:
        if assignment.challenge_id != challenge_id:
            assignment = None

    is_admin = membership.role == WorkspaceRole.ADMIN.value
    workspace_manager = membership.role == WorkspaceRole.MANAGER.value and not manager_scoped
    assigned = assignment is not None

    enrollment_status = enrollment.status if enrollment is not None else None
    is_participant = enrollment_status in PARTICIPATING_STATUSES
    invited = enrollment_status == EnrollmentStatus.INVITED.value

    is_manager = is_admin or workspace_manager or assigned
    can_manage = is_admin or is_manager
    can_enroll = enrollment_status not in ACTIVE_ENROLLMENT_STATUSES and self_enrollment_allowed

    return EffectivePermissions(
        is_admin=is_admin,
        is_manager=is_manager,
        is_participant=is_participant,
        can_manage=can_manage,
        can_approve_submissions=can_manage,
        can_enroll=can_enroll,
        role=_role_label(is_admin, workspace_manager, assigned, is_participant, invited),
        permissions=_permission_names(is_admin, is_manager, is_participant),
    )


def resolve_from_signals(
    signals: ChallengeRoleSignals,
    challenge_id: uuid_pkg.UUID | None = None,
) -> EffectivePermissions:
    """Convenience wrapper over resolve_challenge_permissions for fetched signals."""
    return resolve_challenge_permissions(
        signals.membership,
        signals.assignment,
        signals.enrollment,
        challenge_id=challenge_id,
        self_enrollment_allowed=signals.self_enrollment_allowed,
        manager_scoped=signals.manager_scoped,
    )


def can_approve(
    permissions: EffectivePermissions,
    submission_owner_id: uuid_pkg.UUID,
    reviewer_id: uuid_pkg.UUID,
) -> bool:
    """Whether reviewer_id may decide on a submission owned by submission_owner_id.

    Self-approval is refused regardless of capability.
    """
    if submission_owner_id == reviewer_id:
        return False
    return permissions.can_approve_submissions


def ensure_not_self_review(
    submission_owner_id: uuid_pkg.UUID,
    reviewer_id: uuid_pkg.UUID,
) -> None:
    """Raise AuthorizationError when a user tries to review their own submission."""
    if submission_owner_id == reviewer_id:
        raise AuthorizationError(SELF_APPROVAL_MESSAGE)


def ensure_can_review(
    permissions: EffectivePermissions,
    submission_owner_id: uuid_pkg.UUID,
    reviewer_id: uuid_pkg.UUID,
) -> None:
    """Raise AuthorizationError with the specific reason when can_approve() is False."""
    ensure_not_self_review(submission_owner_id, reviewer_id)
    if not can_approve(permissions, submission_owner_id, reviewer_id):
        raise AuthorizationError(CANNOT_REVIEW_MESSAGE)
