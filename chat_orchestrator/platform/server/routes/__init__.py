from fastapi import APIRouter

from chat_orchestrator.platform.server.routes.base import base_router

root = APIRouter()
root.include_router(base_router)
