from codefest.models.competitor import Competitor
from codefest.repositories.base import CrudRepository


class CompetitorRepository(CrudRepository[Competitor]):
    model = Competitor
