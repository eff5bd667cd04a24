"""
API module for FastAPI routes.
"""
from fastapi import APIRouter

from townsquare.api.routes import blocks, health, messages, moderation, reports

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(messages.router)
api_router.include_router(blocks.router)
api_router.include_router(reports.router)
api_router.include_router(moderation.router)
