"""API router aggregation."""

from fastapi import APIRouter

from flowhub.api.v1 import webhooks

api_router = APIRouter()

api_router.include_router(webhooks.router, prefix="/integration", tags=["integration"])
