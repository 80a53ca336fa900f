from app.domain.challenge_assignment_operations import challenge_assignment_ops
from app.domain.challenge_operations import challenge_ops
from app.domain.enrollment_operations import enrollment_ops
from app.domain.reward_ledger import reward_ledger
from app.domain.role_operations import role_ops
from app.domain.submission_operations import submission_ops
from app.domain.user_operations import user_ops
from app.domain.webhook_log_operations import webhook_log_ops
from app.domain.workspace_operations import workspace_ops

__all__ = [
    "workspace_ops",
    "user_ops",
    "challenge_ops",
    "challenge_assignment_ops",
    "enrollment_ops",
    "role_ops",
    "submission_ops",
    "reward_ledger",
    "webhook_log_ops",
]
