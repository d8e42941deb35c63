from datetime import date

import pytest
from sqlalchemy import select

from codefest.models.competitor import Competitor
from codefest.pagination import Page, Pageable, SortOrder
from codefest.repositories.competitor import CompetitorRepository
from codefest.schemas import CompetitionDTO
from codefest.services.competition_service import (
    CompetitionNameConflict,
    CompetitionNotFound,
    CompetitionService,
)
from codefest.services.search import InMemorySearchIndex, SearchIndex

pytestmark = pytest.mark.anyio


@pytest.fixture
def search_index():
    return InMemorySearchIndex()


@pytest.fixture
def service(session, search_index):
    return CompetitionService(session, search_index)


async def test_save_assigns_id_and_indexes(service, search_index):
    created = await service.save(
        CompetitionDTO(name="CodeFest 2017", location="Colombo", start_date=date(2017, 5, 1))
    )

    assert created.id is not None
    assert created.location == "Colombo"
    assert (await search_index.search("codefest", Pageable())).content == [created.id]


async def test_save_with_existing_id_updates_in_place(service, search_index):
    created = await service.save(CompetitionDTO(name="Hackathon"))

    updated = await service.save(
        CompetitionDTO(id=created.id, name="Hackathon Finals", description="Final round")
    )

    assert updated.id == created.id
    assert (await service.find_one(created.id)).description == "Final round"
    assert (await search_index.search("finals", Pageable())).content == [created.id]


async def test_update_of_missing_id_raises(service):
    with pytest.raises(CompetitionNotFound):
        await service.save(CompetitionDTO(id=404, name="Ghost"))


async def test_duplicate_name_is_rejected(service):
    await service.save(CompetitionDTO(name="Robotics"))
    with pytest.raises(CompetitionNameConflict):
        await service.save(CompetitionDTO(name="Robotics"))


async def test_find_all_pages_and_sorts(service):
    for name in ("Charlie", "Alpha", "Bravo"):
        await service.save(CompetitionDTO(name=name))

    first = await service.find_all(Pageable(page=0, size=2, sort=(SortOrder("name"),)))
    second = await service.find_all(Pageable(page=1, size=2, sort=(SortOrder("name"),)))

    assert [c.name for c in first.content] == ["Alpha", "Bravo"]
    assert [c.name for c in second.content] == ["Charlie"]
    assert first.total == 3


async def test_find_one_missing_returns_none(service):
    assert await service.find_one(999) is None


async def test_delete_removes_row_index_entry_and_detaches_competitors(service, session, search_index):
    created = await service.save(CompetitionDTO(name="Quiz Night"))
    competitor = await CompetitorRepository(session).save(
        Competitor(name="Nimal", email="nimal@example.com", competition_id=created.id)
    )

    competitor_id = competitor.id

    await service.delete(created.id)

    assert await service.find_one(created.id) is None
    assert (await search_index.search("quiz", Pageable())).content == []
    session.expire_all()
    stored = (await session.execute(select(Competitor).where(Competitor.id == competitor_id))).scalar_one()
    assert stored.competition_id is None


async def test_delete_of_missing_id_is_a_no_op(service):
    await service.delete(12345)


async def test_search_hydrates_hits_in_index_order(service):
    a = await service.save(CompetitionDTO(name="Data Science Cup", location="Galle"))
    b = await service.save(CompetitionDTO(name="Science Olympiad", location="Galle"))

    page = await service.search("science", Pageable(sort=(SortOrder("id", ascending=False),)))

    assert [c.id for c in page.content] == [b.id, a.id]
    assert page.total == 2


async def test_search_skips_ids_missing_from_the_store(session):
    class StaleIndex(SearchIndex):
        async def search(self, query, pageable):
            return Page(content=[777], pageable=pageable, total=1)

    page = await CompetitionService(session, StaleIndex()).search("anything", Pageable())
    assert page.content == []
    assert page.total == 0


async def test_reindex_rebuilds_from_store(service, search_index):
    saved = await service.save(CompetitionDTO(name="Capture The Flag"))
    await search_index.rebuild([])
    assert (await search_index.search("flag", Pageable())).content == []

    assert await service.reindex() == 1
    assert (await search_index.search("flag", Pageable())).content == [saved.id]


async def test_index_failure_propagates(session):
    class BrokenIndex(InMemorySearchIndex):
        async def index(self, dto):
            raise RuntimeError("index unavailable")

    with pytest.raises(RuntimeError, match="index unavailable"):
        await CompetitionService(session, BrokenIndex()).save(CompetitionDTO(name="Unlucky"))


async def test_list_and_search_agree_on_name_order(service):
    for name in ("beta Cup", "Alpha Cup", "charlie Cup"):
        await service.save(CompetitionDTO(name=name))
    by_name = Pageable(sort=(SortOrder("name"),))

    listed = await service.find_all(by_name)
    searched = await service.search("cup", by_name)

    assert [c.name for c in listed.content] == ["Alpha Cup", "beta Cup", "charlie Cup"]
    assert [c.name for c in searched.content] == [c.name for c in listed.content]
