from fastapi import APIRouter

from merenda.app.api.v1.endpoints.health import router as health_router
from merenda.app.api.v1.endpoints.history import router as history_router
from merenda.app.api.v1.endpoints.notifications import router as notifications_router
from merenda.app.api.v1.endpoints.schools import router as schools_router
from merenda.app.api.v1.endpoints.stock import router as stock_router
from merenda.app.api.v1.endpoints.transfers import router as transfers_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(stock_router, tags=["stock"])
router.include_router(transfers_router, tags=["transfers"])
router.include_router(schools_router, tags=["schools"])
router.include_router(notifications_router, tags=["notifications"])
router.include_router(history_router, tags=["history"])
