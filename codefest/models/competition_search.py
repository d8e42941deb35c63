from sqlalchemy import Column, Integer, Text

from codefest.database import Base


class CompetitionSearchDocument(Base):
    """Denormalised, lower-cased text of one competition for the database search backend."""

    __tablename__ = "competition_search_index"

    competition_id = Column(Integer, primary_key=True, autoincrement=False)
    document = Column(Text, nullable=False, default="")
    name = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    location = Column(Text, nullable=False, default="")
    start_date = Column(Text, nullable=False, default="")
    end_date = Column(Text, nullable=False, default="")
