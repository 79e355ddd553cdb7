from fastapi import APIRouter

from voxrelay.gateway.api.stream import router as stream_router

router = APIRouter()
router.include_router(stream_router)

__all__ = ["router"]
