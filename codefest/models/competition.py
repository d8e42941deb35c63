from sqlalchemy import Column, Date, Integer, String, Text

from codefest.database import Base


class Competition(Base):
    __tablename__ = "competitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(120), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<Competition id={self.id} name={self.name!r}>"
