"""Persistence repositories, one per mapped entity."""

from .base import CrudRepository
from .competition import CompetitionRepository
from .competitor import CompetitorRepository

__all__ = ["CompetitionRepository", "CompetitorRepository", "CrudRepository"]
