"""
Tests for SearchStore against in-memory SQLite.
"""
import pytest
from sqlalchemy import select

from src.search.data_types import CompanyFailure, CompanySuccess, Person
from src.search.database import NicheHistoryModel, PersonModel, SearchCompanyModel


def _success(payload, name="Acme Dental", website="https://www.acmedental.com/"):
    return CompanySuccess(
        name=name,
        website=website,
        description="Dental PMS",
        industry="Healthcare",
        country="US",
        extracted=payload,
    )


@pytest.mark.asyncio
class TestSearchStore:

    async def test_create_and_get_search(self, store):
        search_id = await store.create_search("owner-1", "dental software", "dental_software")
        search = await store.get_search(search_id, "owner-1")

        assert search["search_id"] == search_id
        assert search["query"] == "dental software"
        assert search["niche_key"] == "dental_software"
        assert search["global_opportunities"] is None
        assert search["companies"] == []

    async def test_get_search_is_owner_scoped(self, store):
        search_id = await store.create_search("owner-1", "dental software", "dental_software")
        assert await store.get_search(search_id, "owner-2") is None
        assert await store.get_search(9999, "owner-1") is None

    async def test_save_company_success(self, store, sample_payload):
        search_id = await store.create_search("owner-1", "dental software", "dental_software")
        company_id = await store.save_company(search_id, "owner-1", _success(sample_payload))

        company = (await store.get_search(search_id, "owner-1"))["companies"][0]
        assert company["id"] == company_id
        assert company["status"] == "success"
        assert company["domain"] == "acmedental.com"
        assert company["fit_band"] == "high"
        assert company["acquisition_fit_score"] == 8
        assert company["primary_industry"] == "Healthcare"
        assert company["favicon_url"] == "https://www.google.com/s2/favicons?sz=64&domain_url=acmedental.com"
        assert company["raw_json"]["tech_stack"] == ["React", "PostgreSQL"]

    async def test_save_failed_companies_batch(self, store, session_factory):
        search_id = await store.create_search("owner-1", "dental software", "dental_software")
        await store.save_failed_companies(search_id, "owner-1", [
            CompanyFailure(name="Down Co", website="down.com", description="", error_message="No content could be scraped from the site"),
            CompanyFailure(name="No Site", website=None, description="", error_message="Company has no website"),
        ])

        async with session_factory() as session:
            rows = (await session.execute(select(SearchCompanyModel).order_by(SearchCompanyModel.id))).scalars().all()
        assert [r.status for r in rows] == ["failed", "failed"]
        assert rows[0].error_message == "No content could be scraped from the site"
        assert rows[1].domain == ""
        assert rows[1].favicon_url is None

    async def test_save_failed_companies_empty_is_noop(self, store):
        await store.save_failed_companies(1, "owner-1", [])

    async def test_insert_people_skips_unreachable_and_known_emails(self, store, session_factory, sample_payload):
        search_id = await store.create_search("owner-1", "dental software", "dental_software")
        company_id = await store.save_company(search_id, "owner-1", _success(sample_payload))

        first = await store.insert_people(company_id, "owner-1", [
            Person(full_name="Jane Doe", email="jane@acme.com"),
            Person(full_name="Phone Only", phone="+1 555 0100"),
            Person(full_name="Ghost"),
        ])
        second = await store.insert_people(company_id, "owner-1", [
            Person(full_name="Jane Again", email="JANE@acme.com"),
        ])

        assert first == 2
        assert second == 0
        async with session_factory() as session:
            names = (await session.execute(select(PersonModel.full_name))).scalars().all()
        assert sorted(names) == ["Jane Doe", "Phone Only"]

    async def test_update_global_opportunities(self, store):
        search_id = await store.create_search("owner-1", "dental software", "dental_software")
        await store.update_global_opportunities(search_id, "Consolidation is underway.")
        assert (await store.get_search(search_id, "owner-1"))["global_opportunities"] == "Consolidation is underway."

    async def test_record_and_get_seen_domains(self, store, session_factory):
        new = await store.record_seen_domains("owner-1", "dental", ["https://www.a.com/", "a.com", "b.com", None, ""])
        again = await store.record_seen_domains("owner-1", "dental", ["b.com", "c.com"])

        assert new == 2
        assert again == 1
        assert await store.get_seen_domains("owner-1", "dental") == frozenset({"a.com", "b.com", "c.com"})
        assert await store.get_seen_domains("owner-1", "logistics") == frozenset()
        assert await store.get_seen_domains("owner-2", "dental") == frozenset()

        async with session_factory() as session:
            count = len((await session.execute(select(NicheHistoryModel))).scalars().all())
        assert count == 3

    async def test_saved_domains(self, store, sample_payload):
        search_id = await store.create_search("owner-1", "dental software", "dental_software")
        company_id = await store.save_company(search_id, "owner-1", _success(sample_payload))
        await store.save_company(search_id, "owner-1", _success(sample_payload, name="Other", website="other.com"))

        assert await store.get_saved_domains("owner-1") == frozenset()
        assert await store.set_company_saved(company_id, "owner-1") is True
        assert await store.set_company_saved(company_id, "owner-2") is False
        assert await store.get_saved_domains("owner-1") == frozenset({"acmedental.com"})

    async def test_list_searches_newest_first_with_counts(self, store, sample_payload):
        first = await store.create_search("owner-1", "dental software", "dental_software")
        second = await store.create_search("owner-1", "fleet telematics", "fleet_telematics")
        await store.create_search("owner-2", "other owner", "other_owner")
        await store.save_company(first, "owner-1", _success(sample_payload))

        history = await store.list_searches("owner-1")
        assert [h["id"] for h in history] == [second, first]
        assert [h["company_count"] for h in history] == [0, 1]
        assert history[0]["created_at"] is not None

        assert len(await store.list_searches("owner-1", limit=1)) == 1
