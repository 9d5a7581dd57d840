import enum

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base
from ..utils.timestamps import utcnow


class Role(enum.IntEnum):
    RECRUITER = 1
    APPLICANT = 2


class ApplicationStatus(str, enum.Enum):
    UNSENT = "unsent"
    UNHANDLED = "unhandled"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Person(Base):
    __tablename__ = "person"

    person_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    surname = Column(String(255), nullable=True)
    pnr = Column(String(13), unique=True, index=True, nullable=True)  # yyyyMMdd-xxxx
    email = Column(String(255), unique=True, index=True, nullable=True)
    username = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=True)  # bcrypt hash
    role_id = Column(Integer, nullable=False, default=int(Role.APPLICANT))
    status = Column(String(20), nullable=False, default=ApplicationStatus.UNSENT.value)
    # Naive UTC, microsecond precision. Compared by value in the status update protocol.
    last_updated = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    competence_profiles = relationship(
        "CompetenceProfile", back_populates="person", cascade="all, delete-orphan"
    )
    availability = relationship("Availability", back_populates="person", cascade="all, delete-orphan")

    @property
    def role(self) -> Role:
        return Role(self.role_id)

    @property
    def application_status(self) -> ApplicationStatus:
        return ApplicationStatus(self.status)
