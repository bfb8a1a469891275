from sendo.web.routers.files import router as files_router
from sendo.web.routers.sessions import join_router
from sendo.web.routers.sessions import router as sessions_router

__all__ = [
    "files_router",
    "join_router",
    "sessions_router",
]
