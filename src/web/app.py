from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
import contextlib
import logging

from src.core.config import settings
from src.core.database import init_db

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Market Search",
    description="Discover, select and enrich SaaS companies for a market query",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Search", "description": "Market searches, history and extraction cache"},
    ]
)

from src.web.routers import register_routers

register_routers(app)

@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize Database Tables
    await init_db()

    yield

    # Let detached contact/insight tasks finish before the loop closes
    from src.web.dependencies import get_search_service
    if get_search_service.cache_info().currsize:
        await get_search_service().drain()

app.router.lifespan_context = lifespan

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"], # Vite Dev Server
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/", include_in_schema=False)
async def root():
    return RedirectResponse(url="/docs")

@app.get("/health", include_in_schema=False)
async def health():
    return {"status": "ok", "environment": settings.environment}
