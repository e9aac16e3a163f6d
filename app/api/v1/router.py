from fastapi import APIRouter
from api.v1.routes.notifications import router as notifications_router
from api.v1.routes.preferences import router as preferences_router
from api.v1.routes.templates import router as templates_router


router = APIRouter()
router.include_router(notifications_router)
router.include_router(preferences_router)
router.include_router(templates_router)
