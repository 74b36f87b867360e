from fastapi import APIRouter

from lms_core.api.routes import activities, components

api_router = APIRouter()
api_router.include_router(components.router)
api_router.include_router(activities.router)
