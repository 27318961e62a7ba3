from fastapi import APIRouter

from video_snipper.api.v1.endpoints import sessions, snip, upload

api_router = APIRouter()
api_router.include_router(upload.router, tags=["upload"])
api_router.include_router(snip.router, tags=["snip"])
api_router.include_router(sessions.router, tags=["sessions"])
