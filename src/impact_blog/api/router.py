"""Main API router aggregation."""

from fastapi import APIRouter

from impact_blog.api.articles import router as articles_router
from impact_blog.api.users import router as users_router

# Main API router
api_router = APIRouter(prefix="/api")

# Include all sub-routers
api_router.include_router(users_router)
api_router.include_router(articles_router)
