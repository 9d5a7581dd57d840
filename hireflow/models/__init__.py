from .availability import Availability
from .competence import Competence, CompetenceProfile
from .person import ApplicationStatus, Person, Role

__all__ = [
    "ApplicationStatus",
    "Availability",
    "Competence",
    "CompetenceProfile",
    "Person",
    "Role",
]
