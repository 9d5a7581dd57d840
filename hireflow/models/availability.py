from sqlalchemy import Column, Date, ForeignKey, Integer
from sqlalchemy.orm import relationship

from ..database import Base


class Availability(Base):
    __tablename__ = "availability"

    availability_id = Column(Integer, primary_key=True, index=True)
    person_id = Column(Integer, ForeignKey("person.person_id"), nullable=False, index=True)
    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)

    person = relationship("Person", back_populates="availability")
