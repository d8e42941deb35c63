from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from codefest.models.competition import Competition
from codefest.models.competitor import Competitor
from codefest.pagination import Page, Pageable
from codefest.repositories.competition import CompetitionRepository
from codefest.schemas import CompetitionDTO
from codefest.services.search import SearchIndex, get_search_index

_LOGGER = logging.getLogger(__name__)


class CompetitionError(Exception):
    """Base error for competition persistence issues."""


class CompetitionNotFound(CompetitionError):
    """Raised when an update targets a competition that does not exist."""


class CompetitionNameConflict(CompetitionError):
    """Raised when another competition already uses the requested name."""


def to_dto(entity: Competition) -> CompetitionDTO:
    return CompetitionDTO.model_validate(entity)


def to_entity(dto: CompetitionDTO) -> Competition:
    return Competition(**dto.model_dump())


class CompetitionService:
    """Persist competitions and keep the search index in step with the store."""

    def __init__(self, db: AsyncSession, search_index: Optional[SearchIndex] = None) -> None:
        self.db = db
        self.repository = CompetitionRepository(db)
        self.search_index = search_index or get_search_index()

    async def _ensure_name_available(self, dto: CompetitionDTO) -> None:
        stmt = select(Competition.id).where(Competition.name == dto.name)
        if dto.id is not None:
            stmt = stmt.where(Competition.id != dto.id)
        if await self.db.scalar(stmt) is not None:
            raise CompetitionNameConflict(f"Competition name '{dto.name}' already exists")

    async def save(self, dto: CompetitionDTO) -> CompetitionDTO:
        _LOGGER.debug("Request to save Competition : %s", dto)
        if dto.id is not None and not await self.repository.exists(dto.id):
            raise CompetitionNotFound(f"Competition {dto.id} not found")
        await self._ensure_name_available(dto)

        try:
            entity = await self.repository.save(to_entity(dto))
        except IntegrityError as exc:
            await self.db.rollback()
            raise CompetitionNameConflict(f"Competition name '{dto.name}' already exists") from exc

        result = to_dto(entity)
        try:
            await self.search_index.index(result)
        except Exception:
            _LOGGER.exception("Failed to index Competition %s", result.id)
            raise
        return result

    async def find_all(self, pageable: Pageable) -> Page[CompetitionDTO]:
        _LOGGER.debug("Request to get all Competitions")
        page = await self.repository.find_all(pageable)
        return page.map(to_dto)

    async def find_one(self, competition_id: int) -> Optional[CompetitionDTO]:
        _LOGGER.debug("Request to get Competition : %s", competition_id)
        entity = await self.repository.get(competition_id)
        return to_dto(entity) if entity is not None else None

    async def delete(self, competition_id: int) -> None:
        _LOGGER.debug("Request to delete Competition : %s", competition_id)
        # Competitors outlive the competition they were registered for.
        await self.db.execute(
            update(Competitor)
            .where(Competitor.competition_id == competition_id)
            .values(competition_id=None)
        )
        await self.repository.delete_by_id(competition_id)
        try:
            await self.search_index.delete(competition_id)
        except Exception:
            _LOGGER.exception("Failed to remove Competition %s from the search index", competition_id)
            raise

    async def search(self, query: str, pageable: Pageable) -> Page[CompetitionDTO]:
        _LOGGER.debug("Request to search for a page of Competitions for query %s", query)
        hits = await self.search_index.search(query, pageable)
        found = {entity.id: entity for entity in await self.repository.find_all_by_ids(hits.content)}
        content = [to_dto(found[competition_id]) for competition_id in hits.content if competition_id in found]
        stale = len(hits.content) - len(content)
        if stale:
            _LOGGER.warning("Search index references %s competitions missing from the store", stale)
        return Page(content=content, pageable=pageable, total=max(hits.total - stale, 0))

    async def reindex(self) -> int:
        rows = await self.db.execute(select(Competition).order_by(Competition.id))
        items = [to_dto(entity) for entity in rows.scalars().all()]
        indexed = await self.search_index.rebuild(items)
        _LOGGER.info("Reindexed %s competitions", indexed)
        return indexed


__all__ = [
    "CompetitionError",
    "CompetitionNameConflict",
    "CompetitionNotFound",
    "CompetitionService",
    "to_dto",
    "to_entity",
]
