from fastapi import APIRouter

from intraop.api.health import router as health_router
from intraop.api.intraop import router as intraop_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(intraop_router, prefix="/v1/intraop", tags=["intraop"])
