from app.models.challenge import (
    Activity,
    ActivityTemplate,
    Challenge,
    ChallengeAssignment,
    ChallengeAssignmentCreate,
    ChallengeAssignmentRead,
    Enrollment,
    EnrollmentRead,
    EnrollmentStatus,
)
from app.models.reward import (
    ParticipantRewardRead,
    PartnerStatus,
    RewardIssuance,
    RewardIssuanceRead,
    RewardStatus,
    RewardType,
)
from app.models.submission import (
    ActivitySubmission,
    ReviewAction,
    SubmissionRead,
    SubmissionResubmitRequest,
    SubmissionReviewRequest,
    SubmissionStatus,
)
from app.models.user import PartnerSyncStatus, User
from app.models.webhook import (
    IdempotencyRecord,
    WebhookLog,
    WebhookLogRead,
    WebhookRetryRequest,
    WebhookStats,
)
from app.models.workspace import (
    RewardStackConfigRead,
    RewardStackConfigUpdate,
    Workspace,
    WorkspaceMembership,
    WorkspaceRead,
    WorkspaceRole,
)

__all__ = [
    "User",
    "PartnerSyncStatus",
    "Workspace",
    "WorkspaceMembership",
    "WorkspaceRead",
    "WorkspaceRole",
    "RewardStackConfigRead",
    "RewardStackConfigUpdate",
    "Challenge",
    "ChallengeAssignment",
    "ChallengeAssignmentCreate",
    "ChallengeAssignmentRead",
    "Enrollment",
    "EnrollmentRead",
    "EnrollmentStatus",
    "ActivityTemplate",
    "Activity",
    "ActivitySubmission",
    "SubmissionStatus",
    "ReviewAction",
    "SubmissionReviewRequest",
    "SubmissionRead",
    "SubmissionResubmitRequest",
    "RewardIssuance",
    "RewardIssuanceRead",
    "ParticipantRewardRead",
    "RewardStatus",
    "RewardType",
    "PartnerStatus",
    "WebhookLog",
    "WebhookLogRead",
    "WebhookStats",
    "WebhookRetryRequest",
    "IdempotencyRecord",
]
