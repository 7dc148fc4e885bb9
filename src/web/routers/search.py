"""Search router: run market searches and read back their results."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from src.core.schemas import StandardResponse
from src.search.cache import ExtractionCache
from src.search.schemas import SearchHistoryItem, SearchOut, SearchRequest
from src.search.service import SearchService
from src.search.store import SearchStore
from src.web.dependencies import get_extraction_cache, get_search_service, get_search_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Search"])


@router.post("/search", response_model=StandardResponse[SearchOut], summary="Run Market Search")
async def run_search(
    request: SearchRequest,
    service: SearchService = Depends(get_search_service),
    store: SearchStore = Depends(get_search_store),
):
    """
    Discover, select and enrich companies for a market query.
    Contacts and the market-opportunity narrative are filled in after the
    response is returned; poll GET /api/search/{search_id} for them.
    """
    try:
        result = await service.run_search(
            request.query,
            owner_id=request.owner_id,
            desired_count=request.desired_count,
            randomize=request.randomize,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    search = await store.get_search(result.search_id, request.owner_id) or {
        "search_id": result.search_id,
        "query": result.query,
        "niche_key": result.niche_key,
        "companies": [],
    }
    if result.selection:
        search["selection"] = result.selection.to_dict()

    return StandardResponse(data=SearchOut(**search), message=result.message)


@router.get("/search/cache/stats", response_model=StandardResponse[dict], summary="Extraction Cache Stats")
async def cache_stats(cache: ExtractionCache = Depends(get_extraction_cache)):
    return StandardResponse(data=cache.stats())


@router.get("/search/{search_id}", response_model=StandardResponse[SearchOut], summary="Get Search")
async def get_search(
    search_id: int,
    owner_id: str = Query("default"),
    store: SearchStore = Depends(get_search_store),
):
    search = await store.get_search(search_id, owner_id)
    if not search:
        raise HTTPException(status_code=404, detail="Search not found")
    return StandardResponse(data=SearchOut(**search))


@router.get("/search-history", response_model=StandardResponse[List[SearchHistoryItem]], summary="Search History")
async def search_history(
    owner_id: str = Query("default"),
    limit: int = Query(20, ge=1, le=100),
    store: SearchStore = Depends(get_search_store),
):
    searches = await store.list_searches(owner_id, limit=limit)
    return StandardResponse(data=[SearchHistoryItem(**s) for s in searches])


@router.post("/search/companies/{company_id}/save", response_model=StandardResponse[dict], summary="Save Company")
async def save_company(
    company_id: int,
    owner_id: str = Query("default"),
    saved: bool = Query(True),
    store: SearchStore = Depends(get_search_store),
):
    """Mark a company as saved. Saved domains are only re-offered when nothing fresher is left."""
    if not await store.set_company_saved(company_id, owner_id, saved):
        raise HTTPException(status_code=404, detail="Company not found")
    return StandardResponse(data={"company_id": company_id, "is_saved": saved})
