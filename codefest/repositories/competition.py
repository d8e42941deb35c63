from codefest.models.competition import Competition
from codefest.repositories.base import CrudRepository


class CompetitionRepository(CrudRepository[Competition]):
    model = Competition
