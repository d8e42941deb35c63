from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import and_, delete, func, select, true
from sqlalchemy.orm import sessionmaker

import codefest.database as database
from codefest.models.competition_search import CompetitionSearchDocument
from codefest.pagination import Page, Pageable
from codefest.schemas import CompetitionDTO

_LOGGER = logging.getLogger(__name__)

SEARCHABLE_FIELDS = ("name", "description", "location", "start_date", "end_date")

_TERM_RE = re.compile(r'(?:(?P<field>[A-Za-z_]+):)?(?:"(?P<phrase>[^"]*)"?|(?P<word>\S+))')


class SearchIndexError(Exception):
    """Raised when the search backend cannot be read or written."""


@dataclass(frozen=True)
class SearchTerm:
    value: str
    field: Optional[str] = None


def parse_query(query: str) -> list[SearchTerm]:
    """Split ``query`` into lower-cased terms.

    Double quotes keep a phrase together, ``field:value`` restricts a term to
    one field and a lone ``*`` matches everything.
    """

    terms: list[SearchTerm] = []
    for match in _TERM_RE.finditer(query or ""):
        field = match.group("field")
        phrase = match.group("phrase")
        value = phrase if phrase is not None else match.group("word") or ""
        if field and field.lower() not in SEARCHABLE_FIELDS:
            value = f"{field}:{value}"
            field = None
        value = value.strip().lower()
        if not value or value == "*":
            continue
        terms.append(SearchTerm(value=value, field=field.lower() if field else None))
    return terms


def _is_match_all(query: str) -> bool:
    tokens = (query or "").split()
    return bool(tokens) and all(token == "*" for token in tokens)


def document_fields(dto: CompetitionDTO) -> dict[str, str]:
    values = {
        "name": dto.name,
        "description": dto.description,
        "location": dto.location,
        "start_date": dto.start_date.isoformat() if dto.start_date else None,
        "end_date": dto.end_date.isoformat() if dto.end_date else None,
    }
    return {key: (value or "").lower() for key, value in values.items()}


def document_text(fields: dict[str, str]) -> str:
    return " ".join(value for value in fields.values() if value)


class SearchIndex:
    backend_name = "base"

    async def index(self, dto: CompetitionDTO) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    async def delete(self, competition_id: int) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    async def search(self, query: str, pageable: Pageable) -> Page[int]:  # pragma: no cover
        raise NotImplementedError

    async def rebuild(self, items: Iterable[CompetitionDTO]) -> int:  # pragma: no cover
        raise NotImplementedError


class InMemorySearchIndex(SearchIndex):
    """Process-local index. Contents are lost on restart."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._documents: dict[int, dict[str, str]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _matches(fields: dict[str, str], terms: list[SearchTerm]) -> bool:
        text = document_text(fields)
        for term in terms:
            haystack = fields.get(term.field, "") if term.field else text
            if term.value not in haystack:
                return False
        return True

    async def index(self, dto: CompetitionDTO) -> None:
        if dto.id is None:
            raise SearchIndexError("Cannot index a competition without an id")
        async with self._lock:
            self._documents[dto.id] = document_fields(dto)

    async def delete(self, competition_id: int) -> None:
        async with self._lock:
            self._documents.pop(competition_id, None)

    async def search(self, query: str, pageable: Pageable) -> Page[int]:
        terms = parse_query(query)
        if not terms and not _is_match_all(query):
            return Page(content=[], pageable=pageable, total=0)

        async with self._lock:
            hits = [
                (competition_id, fields)
                for competition_id, fields in self._documents.items()
                if self._matches(fields, terms)
            ]

        hits.sort(key=lambda hit: hit[0])
        for order in reversed(pageable.sort):
            if order.field == "id":
                hits.sort(key=lambda hit: hit[0], reverse=not order.ascending)
            else:
                hits.sort(key=lambda hit, name=order.field: hit[1].get(name, ""), reverse=not order.ascending)

        window = hits[pageable.offset:pageable.offset + pageable.size]
        return Page(content=[competition_id for competition_id, _ in window], pageable=pageable, total=len(hits))

    async def rebuild(self, items: Iterable[CompetitionDTO]) -> int:
        documents = {dto.id: document_fields(dto) for dto in items if dto.id is not None}
        async with self._lock:
            self._documents = documents
        return len(documents)


class DatabaseSearchIndex(SearchIndex):
    """Stores documents in ``competition_search_index`` using its own sessions."""

    backend_name = "database"

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory

    def _sessions(self) -> sessionmaker:
        # Resolved per call so a startup fallback to SQLite is picked up.
        return self._session_factory or database.SessionLocal

    @staticmethod
    def _term_clause(term: SearchTerm):
        column = getattr(CompetitionSearchDocument, term.field) if term.field else CompetitionSearchDocument.document
        return column.contains(term.value, autoescape=True)

    @staticmethod
    def _order_by(pageable: Pageable) -> list:
        clauses = []
        for order in pageable.sort:
            if order.field == "id":
                column = CompetitionSearchDocument.competition_id
            else:
                column = getattr(CompetitionSearchDocument, order.field)
            clauses.append(column.asc() if order.ascending else column.desc())
        clauses.append(CompetitionSearchDocument.competition_id.asc())
        return clauses

    async def index(self, dto: CompetitionDTO) -> None:
        if dto.id is None:
            raise SearchIndexError("Cannot index a competition without an id")
        fields = document_fields(dto)
        async with self._sessions()() as session:
            await session.merge(
                CompetitionSearchDocument(competition_id=dto.id, document=document_text(fields), **fields)
            )
            await session.commit()

    async def delete(self, competition_id: int) -> None:
        async with self._sessions()() as session:
            await session.execute(
                delete(CompetitionSearchDocument).where(CompetitionSearchDocument.competition_id == competition_id)
            )
            await session.commit()

    async def search(self, query: str, pageable: Pageable) -> Page[int]:
        terms = parse_query(query)
        if not terms and not _is_match_all(query):
            return Page(content=[], pageable=pageable, total=0)

        condition = and_(*(self._term_clause(term) for term in terms)) if terms else true()
        async with self._sessions()() as session:
            total = await session.scalar(
                select(func.count()).select_from(CompetitionSearchDocument).where(condition)
            )
            rows = await session.execute(
                select(CompetitionSearchDocument.competition_id)
                .where(condition)
                .order_by(*self._order_by(pageable))
                .offset(pageable.offset)
                .limit(pageable.size)
            )
            ids = list(rows.scalars().all())
        return Page(content=ids, pageable=pageable, total=total or 0)

    async def rebuild(self, items: Iterable[CompetitionDTO]) -> int:
        count = 0
        async with self._sessions()() as session:
            await session.execute(delete(CompetitionSearchDocument))
            for dto in items:
                if dto.id is None:
                    continue
                fields = document_fields(dto)
                session.add(CompetitionSearchDocument(competition_id=dto.id, document=document_text(fields), **fields))
                count += 1
            await session.commit()
        return count


_search_index: Optional[SearchIndex] = None


def get_search_index() -> SearchIndex:
    """Return the shared search index for the configured backend."""

    global _search_index
    if _search_index is not None:
        return _search_index

    backend = os.getenv("SEARCH_BACKEND", "database").strip().lower() or "database"
    if backend == "memory":
        _search_index = InMemorySearchIndex()
    elif backend == "database":
        _search_index = DatabaseSearchIndex()
    else:
        raise SearchIndexError(f"Unknown SEARCH_BACKEND '{backend}'")
    _LOGGER.info("Using %s search index", _search_index.backend_name)
    return _search_index


__all__ = [
    "DatabaseSearchIndex",
    "InMemorySearchIndex",
    "SearchIndex",
    "SearchIndexError",
    "SearchTerm",
    "get_search_index",
    "parse_query",
]
