"""HTTP API routers."""

from impact_blog.api.router import api_router

__all__ = ["api_router"]
