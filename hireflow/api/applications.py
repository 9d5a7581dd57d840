import logging
from typing import Any

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..services.applications import get_application, list_applications, submit_application
from ..services.status_update import UpdateOutcome, update_application_status
from ..utils.dependencies import AuthenticatedIdentity, get_current_user, get_db
from ..utils.error_handlers import NotFoundError, get_error_message
from ..utils.roles import applicant_only, recruiter_only, require_self_or_elevated
from ..utils.validation import MAX_ID, validate_positive_int

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])

UPDATE_OUTCOME_STATUS = {
    UpdateOutcome.UPDATED: 200,
    UpdateOutcome.INVALID: 400,
    UpdateOutcome.NOT_FOUND: 404,
    UpdateOutcome.CONFLICT: 409,
}


class UpdateStatusRequest(BaseModel):
    # Untyped on purpose: validation happens in the service so bad input is a 400, not a coerced value.
    application_id: Any = None
    status: Any = None
    lastUpdated: Any = None


class SubmitApplicationRequest(BaseModel):
    userId: Any = None
    expertise: Any = None
    availability: Any = None


@router.get("/fetch")
def fetch_applications(
    user: AuthenticatedIdentity = Depends(recruiter_only),
    db: Session = Depends(get_db),
):
    applications = list_applications(db)
    if not applications:
        raise NotFoundError(get_error_message("no_applications"), code="NO_APPLICATIONS")
    return {"success": True, "applications": applications}


@router.post("/update")
def update_application(
    payload: UpdateStatusRequest,
    user: AuthenticatedIdentity = Depends(recruiter_only),
    db: Session = Depends(get_db),
):
    result = update_application_status(db, payload.application_id, payload.status, payload.lastUpdated)
    if not result.success:
        logger.info(
            "Status update by recruiter %s on application %s failed: %s",
            user.person_id, payload.application_id, result.outcome.value,
        )
    return JSONResponse(status_code=UPDATE_OUTCOME_STATUS[result.outcome], content=result.to_dict())


@router.post("/submit", status_code=201)
def submit(
    payload: SubmitApplicationRequest,
    request: Request,
    user: AuthenticatedIdentity = Depends(applicant_only),
    db: Session = Depends(get_db),
):
    person_id = validate_positive_int(payload.userId, "userId")
    require_self_or_elevated(user, person_id, path=request.url.path)
    submit_application(db, person_id, payload.expertise, payload.availability)
    return {"success": True, "message": "Application submitted successfully"}


@router.get("/{person_id}")
def read_application(
    request: Request,
    person_id: int = Path(gt=0, le=MAX_ID),
    user: AuthenticatedIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_self_or_elevated(user, person_id, path=request.url.path)
    application = get_application(db, person_id)
    if application is None:
        raise NotFoundError(get_error_message("application_not_found"))
    return {"success": True, "application": application}
