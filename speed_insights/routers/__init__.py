# API routers for the Speed Insights drain service

from fastapi import APIRouter

from .drain import router as drain_router
from .insights import router as insights_router

router = APIRouter()
router.include_router(drain_router)
router.include_router(insights_router)
