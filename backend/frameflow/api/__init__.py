from fastapi import APIRouter
from frameflow.api.routers.board import router as board_router
from frameflow.api.routers.frames import router as frames_router
from frameflow.api.routers.documents import router as documents_router


router = APIRouter()
router.include_router(board_router, tags=["board"])
router.include_router(frames_router, tags=["frames"])
router.include_router(documents_router, tags=["documents"])
