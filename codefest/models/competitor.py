from sqlalchemy import Column, ForeignKey, Integer, String

from codefest.database import Base


class Competitor(Base):
    __tablename__ = "competitors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=True)
    competition_id = Column(
        Integer,
        ForeignKey("competitions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
