# Services package

from app.services.reward_reconciliation import RewardReconciler, reward_reconciler
from app.services.rewardstack import WebhookIngestionPipeline, webhook_pipeline
from app.services.submission_review import SubmissionReviewService, submission_review

__all__ = [
    # Review workflow
    "SubmissionReviewService",
    "submission_review",
    # Partner webhooks
    "WebhookIngestionPipeline",
    "webhook_pipeline",
    # Reconciliation
    "RewardReconciler",
    "reward_reconciler",
]
