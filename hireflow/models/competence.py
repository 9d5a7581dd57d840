from sqlalchemy import CheckConstraint, Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class Competence(Base):
    __tablename__ = "competence"

    competence_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)


class CompetenceProfile(Base):
    __tablename__ = "competence_profile"
    __table_args__ = (
        CheckConstraint(
            "years_of_experience >= 0 AND years_of_experience <= 99",
            name="ck_competence_profile_years",
        ),
    )

    competence_profile_id = Column(Integer, primary_key=True, index=True)
    person_id = Column(Integer, ForeignKey("person.person_id"), nullable=False, index=True)
    competence_id = Column(Integer, ForeignKey("competence.competence_id"), nullable=False)
    years_of_experience = Column(Float, nullable=False)

    person = relationship("Person", back_populates="competence_profiles")
    competence = relationship("Competence")
