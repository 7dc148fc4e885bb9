"""
Persistence for market searches.

SearchStore takes a session factory rather than a session: enrichment tasks
run concurrently and each write goes through its own short-lived session.
"""
import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Protocol, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from src.core.utils import build_favicon_url, normalize_domain
from src.search.data_types import CompanyFailure, CompanySuccess, Person
from src.search.database import NicheHistoryModel, PersonModel, SearchCompanyModel, SearchModel
from src.search.schemas import fit_band

logger = logging.getLogger(__name__)


class SearchStoreProtocol(Protocol):
    async def create_search(self, owner_id: str, query: str, niche_key: str) -> int: ...

    async def save_company(self, search_id: int, owner_id: str, outcome: CompanySuccess) -> int: ...

    async def save_failed_companies(self, search_id: int, owner_id: str, failures: Sequence[CompanyFailure]) -> None: ...

    async def insert_people(self, company_id: int, owner_id: str, people: Sequence[Person]) -> int: ...

    async def update_global_opportunities(self, search_id: int, text: str) -> None: ...


class SearchStore:
    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        if session_factory is None:
            from src.core.database import async_session_factory
            session_factory = async_session_factory
        self.session_factory = session_factory

    # --- Writes ---

    async def create_search(self, owner_id: str, query: str, niche_key: str) -> int:
        async with self.session_factory() as session:
            search = SearchModel(owner_id=owner_id, query=query, niche_key=niche_key)
            session.add(search)
            await session.commit()
            logger.info(f"Created search {search.id} for owner={owner_id} niche={niche_key}")
            return search.id

    async def save_company(self, search_id: int, owner_id: str, outcome: CompanySuccess) -> int:
        payload = outcome.extracted
        async with self.session_factory() as session:
            company = SearchCompanyModel(
                search_id=search_id,
                owner_id=owner_id,
                name=outcome.name,
                website=outcome.website,
                domain=normalize_domain(outcome.website),
                description=outcome.description,
                status="success",
                raw_json=payload.model_dump(),
                summary=payload.summary,
                acquisition_fit_score=payload.acquisition_fit_score,
                fit_band=fit_band(payload.acquisition_fit_score),
                primary_industry=payload.primary_industry,
                secondary_industry=payload.secondary_industry,
                favicon_url=build_favicon_url(outcome.website),
            )
            session.add(company)
            await session.commit()
            return company.id

    async def save_failed_companies(self, search_id: int, owner_id: str, failures: Sequence[CompanyFailure]) -> None:
        """Single batch insert for all failures of a run."""
        if not failures:
            return
        async with self.session_factory() as session:
            session.add_all([
                SearchCompanyModel(
                    search_id=search_id,
                    owner_id=owner_id,
                    name=failure.name,
                    website=failure.website,
                    domain=normalize_domain(failure.website),
                    description=failure.description,
                    status="failed",
                    error_message=failure.error_message,
                    favicon_url=build_favicon_url(failure.website),
                )
                for failure in failures
            ])
            await session.commit()
        logger.info(f"Saved {len(failures)} failed companies for search {search_id}")

    async def insert_people(self, company_id: int, owner_id: str, people: Sequence[Person]) -> int:
        """
        Insert reachable people for a company. Emails the owner already has
        on file are skipped. Returns the number of rows inserted.
        """
        reachable = [p for p in people if p.is_reachable]
        if not reachable:
            logger.debug(f"No reachable people to insert for company {company_id}")
            return 0

        async with self.session_factory() as session:
            emails = {p.email.lower() for p in reachable if p.email}
            existing = set()
            if emails:
                result = await session.execute(
                    select(func.lower(PersonModel.email)).where(
                        PersonModel.owner_id == owner_id,
                        func.lower(PersonModel.email).in_(emails),
                    )
                )
                existing = set(result.scalars().all())

            rows = []
            for person in reachable:
                key = person.email.lower() if person.email else None
                if key and key in existing:
                    continue
                if key:
                    existing.add(key)
                rows.append(PersonModel(company_id=company_id, owner_id=owner_id, **person.to_dict()))

            session.add_all(rows)
            await session.commit()

        logger.info(f"Inserted {len(rows)} people for company {company_id}")
        return len(rows)

    async def update_global_opportunities(self, search_id: int, text: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(SearchModel).where(SearchModel.id == search_id).values(global_opportunities=text)
            )
            await session.commit()

    async def record_seen_domains(self, owner_id: str, niche_key: str, websites: Iterable[Optional[str]]) -> int:
        """Upsert niche history rows for the given websites. Returns how many were new."""
        domains = {d for d in (normalize_domain(w) for w in websites) if d}
        if not domains:
            return 0

        now = datetime.utcnow()
        async with self.session_factory() as session:
            result = await session.execute(
                select(NicheHistoryModel).where(
                    NicheHistoryModel.owner_id == owner_id,
                    NicheHistoryModel.niche_key == niche_key,
                    NicheHistoryModel.domain.in_(domains),
                )
            )
            existing = {row.domain: row for row in result.scalars().all()}
            for row in existing.values():
                row.last_seen_at = now

            new_domains = sorted(domains - set(existing))
            session.add_all([
                NicheHistoryModel(owner_id=owner_id, niche_key=niche_key, domain=d, first_seen_at=now, last_seen_at=now)
                for d in new_domains
            ])
            await session.commit()
        return len(new_domains)

    # --- Reads ---

    async def get_seen_domains(self, owner_id: str, niche_key: str) -> FrozenSet[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(NicheHistoryModel.domain).where(
                    NicheHistoryModel.owner_id == owner_id,
                    NicheHistoryModel.niche_key == niche_key,
                )
            )
            return frozenset(result.scalars().all())

    async def get_saved_domains(self, owner_id: str) -> FrozenSet[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SearchCompanyModel.domain).where(
                    SearchCompanyModel.owner_id == owner_id,
                    SearchCompanyModel.is_saved.is_(True),
                )
            )
            return frozenset(d for d in result.scalars().all() if d)

    async def get_search(self, search_id: int, owner_id: str) -> Optional[Dict[str, Any]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SearchModel)
                .options(selectinload(SearchModel.companies))
                .where(SearchModel.id == search_id, SearchModel.owner_id == owner_id)
            )
            search = result.scalar_one_or_none()
            if search is None:
                return None
            return {
                "search_id": search.id,
                "query": search.query,
                "niche_key": search.niche_key,
                "global_opportunities": search.global_opportunities,
                "companies": [_company_dict(c) for c in search.companies],
            }

    async def list_searches(self, owner_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        async with self.session_factory() as session:
            company_count = (
                select(func.count(SearchCompanyModel.id))
                .where(SearchCompanyModel.search_id == SearchModel.id)
                .correlate(SearchModel)
                .scalar_subquery()
            )
            result = await session.execute(
                select(SearchModel, company_count)
                .where(SearchModel.owner_id == owner_id)
                .order_by(SearchModel.created_at.desc(), SearchModel.id.desc())
                .limit(limit)
            )
            return [
                {
                    "id": search.id,
                    "query": search.query,
                    "created_at": search.created_at.isoformat() if search.created_at else None,
                    "company_count": count or 0,
                }
                for search, count in result.all()
            ]

    async def set_company_saved(self, company_id: int, owner_id: str, is_saved: bool = True) -> bool:
        """Flag a company as saved; saved domains become the selector's last-resort tier."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(SearchCompanyModel)
                .where(SearchCompanyModel.id == company_id, SearchCompanyModel.owner_id == owner_id)
                .values(is_saved=is_saved)
            )
            await session.commit()
            return result.rowcount > 0


def _company_dict(company: SearchCompanyModel) -> Dict[str, Any]:
    return {
        "id": company.id,
        "search_id": company.search_id,
        "name": company.name,
        "website": company.website,
        "domain": company.domain or "",
        "status": company.status,
        "summary": company.summary,
        "acquisition_fit_score": company.acquisition_fit_score,
        "fit_band": company.fit_band,
        "primary_industry": company.primary_industry,
        "favicon_url": company.favicon_url,
        "error_message": company.error_message,
        "is_saved": bool(company.is_saved),
        "raw_json": company.raw_json or {},
    }
