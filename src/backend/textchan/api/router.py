from fastapi import APIRouter

from .routes import status, stream, threads

api_router = APIRouter()

api_router.include_router(status.router)
# Registered ahead of the thread routes so /threads/stream is never read as a thread id.
api_router.include_router(stream.router)
api_router.include_router(threads.router)
