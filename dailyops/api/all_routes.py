"""
All REST routes of the service, combined into one router.
"""
from fastapi import APIRouter

from dailyops.api.routes import days, health, instances

router = APIRouter()
router.include_router(health.router)
router.include_router(days.router)
router.include_router(instances.router)
