import logging

from fastapi import Depends, Request

from ..models.person import Role
from .dependencies import AuthenticatedIdentity, get_current_user
from .error_handlers import ForbiddenError, get_error_message

logger = logging.getLogger(__name__)


def _denied_message(role: Role) -> str:
    if role is Role.RECRUITER:
        return get_error_message("recruiter_only")
    if role is Role.APPLICANT:
        return get_error_message("applicant_only")
    raise ValueError(f"Unknown role: {role!r}")


def require_role(identity: AuthenticatedIdentity, role: Role, *, path: str = "") -> None:
    if identity.role is not role:
        logger.warning(
            "Unauthorized access attempt to %s resource: person_id=%s role=%s path=%s",
            role.name.lower(), identity.person_id, identity.role.name.lower(), path,
        )
        raise ForbiddenError(_denied_message(role))


def require_self_or_elevated(identity: AuthenticatedIdentity, target_person_id: int, *, path: str = "") -> None:
    """Recruiters may act on anyone; applicants only on themselves."""
    if identity.role is Role.RECRUITER:
        return
    if identity.role is Role.APPLICANT:
        if identity.person_id == target_person_id:
            return
        logger.warning(
            "Applicant %s tried to access data of person %s on %s",
            identity.person_id, target_person_id, path,
        )
        raise ForbiddenError(get_error_message("self_only"))
    raise ForbiddenError(get_error_message("self_only"))


def _role_required(required_role: Role):
    def check_role(request: Request, user: AuthenticatedIdentity = Depends(get_current_user)):
        require_role(user, required_role, path=request.url.path)
        return user
    return check_role


recruiter_only = _role_required(Role.RECRUITER)
applicant_only = _role_required(Role.APPLICANT)
