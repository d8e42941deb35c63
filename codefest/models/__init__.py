"""ORM models; importing this package registers every table with ``Base``."""

from .competition import Competition
from .competitor import Competitor
from .competition_search import CompetitionSearchDocument

__all__ = ["Competition", "CompetitionSearchDocument", "Competitor"]
