from fastapi import FastAPI

from src.web.routers.search import router as search_router

def register_routers(app: FastAPI):
    """Register all routers with the application."""
    app.include_router(search_router)
