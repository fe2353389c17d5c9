"""
Main API router
"""
from fastapi import APIRouter

from .endpoints import auth, bookmarks, form, view

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(bookmarks.router, prefix="/bookmarks", tags=["bookmarks"])
api_router.include_router(form.router, prefix="/form", tags=["form"])
api_router.include_router(view.router, tags=["view"])
