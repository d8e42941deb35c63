from __future__ import annotations

from typing import Any, ClassVar, Generic, Iterable, Optional, Type, TypeVar

from sqlalchemy import String, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codefest.pagination import Page, Pageable

ModelT = TypeVar("ModelT")


class CrudRepository(Generic[ModelT]):
    """Generic async persistence for one mapped class keyed by an integer ``id``.

    Subclasses only set ``model``. The repository commits on ``save`` and
    ``delete_by_id``; everything else reads within the caller's session.
    """

    model: ClassVar[Type[Any]]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @property
    def _pk(self):
        return self.model.id

    async def get(self, entity_id: int) -> Optional[ModelT]:
        return await self.session.get(self.model, entity_id)

    async def exists(self, entity_id: int) -> bool:
        found = await self.session.scalar(select(self._pk).where(self._pk == entity_id))
        return found is not None

    async def count(self) -> int:
        return (await self.session.scalar(select(func.count()).select_from(self.model))) or 0

    async def save(self, entity: ModelT) -> ModelT:
        if getattr(entity, "id", None) is None:
            self.session.add(entity)
        else:
            entity = await self.session.merge(entity)
        await self.session.commit()
        await self.session.refresh(entity)
        return entity

    async def delete_by_id(self, entity_id: int) -> bool:
        result = await self.session.execute(delete(self.model).where(self._pk == entity_id))
        await self.session.commit()
        return (result.rowcount or 0) > 0

    async def find_all_by_ids(self, ids: Iterable[int]) -> list[ModelT]:
        wanted = list(ids)
        if not wanted:
            return []
        rows = await self.session.execute(select(self.model).where(self._pk.in_(wanted)))
        return list(rows.scalars().all())

    def _order_by(self, pageable: Pageable) -> list:
        clauses = []
        for order in pageable.sort:
            column = getattr(self.model, order.field)
            if isinstance(column.type, String):
                # Text sorts ignore case, matching the search index
                column = func.lower(column)
            clauses.append(column.asc() if order.ascending else column.desc())
        if not any(order.field == "id" for order in pageable.sort):
            # Stable paging needs a unique tiebreaker.
            clauses.append(self._pk.asc())
        return clauses

    async def find_all(self, pageable: Pageable) -> Page[ModelT]:
        total = await self.count()
        stmt = (
            select(self.model)
            .order_by(*self._order_by(pageable))
            .offset(pageable.offset)
            .limit(pageable.size)
        )
        rows = await self.session.execute(stmt)
        return Page(content=list(rows.scalars().all()), pageable=pageable, total=total)
