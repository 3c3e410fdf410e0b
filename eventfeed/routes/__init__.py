from fastapi import APIRouter
from .auth import router as auth_router
from .events import router as events_router
from .stops import router as stops_router

router = APIRouter()
router.include_router(auth_router, prefix='/auth', tags=['auth'])
router.include_router(events_router, prefix='/events', tags=['events'])
router.include_router(stops_router, prefix='/stops', tags=['stops'])
