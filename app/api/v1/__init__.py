from app.api.v1 import (
    challenges,
    rewards,
    rewardstack_config,
    submissions,
    webhook_monitoring,
    webhooks,
)

__all__ = [
    "webhooks",
    "submissions",
    "challenges",
    "rewards",
    "webhook_monitoring",
    "rewardstack_config",
]
