from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..services.applications import list_competences
from ..utils.dependencies import get_db
from ..utils.error_handlers import NotFoundError, get_error_message

router = APIRouter(prefix="/competences", tags=["Competences"])


@router.get("")
def get_competences(db: Session = Depends(get_db)):
    competences = list_competences(db)
    if not competences:
        raise NotFoundError(get_error_message("no_competences"), code="NO_COMPETENCES")
    return {"success": True, "competences": competences}
