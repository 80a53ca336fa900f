from fastapi import APIRouter

from app.api.v1 import (
    challenges,
    rewards,
    rewardstack_config,
    submissions,
    webhook_monitoring,
    webhooks,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(webhooks.router)
api_router.include_router(submissions.router)
api_router.include_router(challenges.router)
api_router.include_router(rewards.router)
api_router.include_router(webhook_monitoring.router)
api_router.include_router(rewardstack_config.router)
