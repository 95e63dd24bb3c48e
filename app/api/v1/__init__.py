"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import events, health, scans, stats, webhooks

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(scans.router, tags=["scans"])
router.include_router(stats.router, tags=["repositories"])
router.include_router(events.router, prefix="/events", tags=["events"])
router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
