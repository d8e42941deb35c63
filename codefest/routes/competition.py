"""REST endpoints for managing competitions."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from codefest.database import get_db
from codefest.header_util import (
    create_entity_creation_alert,
    create_entity_deletion_alert,
    create_entity_update_alert,
    create_failure_alert,
)
from codefest.pagination import (
    Pageable,
    generate_pagination_headers,
    generate_search_pagination_headers,
    pageable_dependency,
)
from codefest.schemas import MAX_ID, MIN_ID, CompetitionDTO, ReindexResult
from codefest.services.competition_service import (
    CompetitionNameConflict,
    CompetitionNotFound,
    CompetitionService,
)

logger = logging.getLogger("competitions")

ENTITY_NAME = "competition"
SORTABLE_FIELDS = {"id", "name", "description", "location", "start_date", "end_date"}

competition_pageable = pageable_dependency(SORTABLE_FIELDS)

router = APIRouter(prefix="/api", tags=["Competitions"])


def get_competition_service(db: AsyncSession = Depends(get_db)) -> CompetitionService:
    return CompetitionService(db)


async def _save(service: CompetitionService, dto: CompetitionDTO) -> CompetitionDTO:
    try:
        return await service.save(dto)
    except CompetitionNameConflict as exc:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            str(exc),
            headers=create_failure_alert(ENTITY_NAME, "nameexists", str(exc)),
        ) from exc
    except CompetitionNotFound as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc)) from exc


@router.post("/competitions", response_model=CompetitionDTO, status_code=status.HTTP_201_CREATED)
async def create_competition(
    competition: CompetitionDTO,
    response: Response,
    service: CompetitionService = Depends(get_competition_service),
) -> CompetitionDTO:
    logger.debug("REST request to save Competition : %s", competition)
    if competition.id is not None:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            "A new competition cannot already have an ID",
            headers=create_failure_alert(ENTITY_NAME, "idexists", "A new competition cannot already have an ID"),
        )

    result = await _save(service, competition)
    response.status_code = status.HTTP_201_CREATED
    response.headers["Location"] = f"/api/competitions/{result.id}"
    response.headers.update(create_entity_creation_alert(ENTITY_NAME, str(result.id)))
    return result


@router.put("/competitions", response_model=CompetitionDTO)
async def update_competition(
    competition: CompetitionDTO,
    response: Response,
    service: CompetitionService = Depends(get_competition_service),
) -> CompetitionDTO:
    logger.debug("REST request to update Competition : %s", competition)
    if competition.id is None:
        return await create_competition(competition, response, service)

    result = await _save(service, competition)
    response.headers.update(create_entity_update_alert(ENTITY_NAME, str(competition.id)))
    return result


@router.get("/competitions", response_model=List[CompetitionDTO])
async def get_all_competitions(
    response: Response,
    pageable: Pageable = Depends(competition_pageable),
    service: CompetitionService = Depends(get_competition_service),
) -> List[CompetitionDTO]:
    logger.debug("REST request to get a page of Competitions")
    page = await service.find_all(pageable)
    response.headers.update(generate_pagination_headers(page, "/api/competitions"))
    return page.content


@router.get("/competitions/{id}", response_model=CompetitionDTO)
async def get_competition(
    id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    service: CompetitionService = Depends(get_competition_service),
) -> CompetitionDTO:
    logger.debug("REST request to get Competition : %s", id)
    competition = await service.find_one(id)
    if competition is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Competition not found")
    return competition


@router.delete("/competitions/{id}", status_code=status.HTTP_200_OK)
async def delete_competition(
    id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    service: CompetitionService = Depends(get_competition_service),
) -> Response:
    logger.debug("REST request to delete Competition : %s", id)
    await service.delete(id)
    return Response(status_code=status.HTTP_200_OK, headers=create_entity_deletion_alert(ENTITY_NAME, str(id)))


@router.get("/_search/competitions", response_model=List[CompetitionDTO])
async def search_competitions(
    response: Response,
    query: str = Query(..., description="Free-text query; quote phrases, use field:value to target a field"),
    pageable: Pageable = Depends(competition_pageable),
    service: CompetitionService = Depends(get_competition_service),
) -> List[CompetitionDTO]:
    logger.debug("REST request to search for a page of Competitions for query %s", query)
    page = await service.search(query, pageable)
    response.headers.update(generate_search_pagination_headers(query, page, "/api/_search/competitions"))
    return page.content


@router.post("/_index/competitions", response_model=ReindexResult)
async def reindex_competitions(
    service: CompetitionService = Depends(get_competition_service),
) -> ReindexResult:
    logger.debug("REST request to reindex Competitions")
    return ReindexResult(indexed=await service.reindex())
