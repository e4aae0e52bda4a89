"""
Workflow error taxonomy.

Every error carries a stable ``code`` so callers can tell "already done"
from "failed". The API layer renders them as
``{"success": false, "error": {"code", "message"}}``.
"""
from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base class for engine errors"""
    code = "SERVER_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        error = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


class ValidationFailedError(WorkflowError):
    """Missing or malformed input"""
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request"


class AuthRequiredError(WorkflowError):
    code = "AUTH_REQUIRED"
    status_code = 401
    default_message = "Authentication token required"


class AuthInvalidError(WorkflowError):
    code = "AUTH_INVALID"
    status_code = 401
    default_message = "Invalid token"


class AuthExpiredError(WorkflowError):
    code = "AUTH_EXPIRED"
    status_code = 401
    default_message = "Token has expired"


class ForbiddenError(WorkflowError):
    """Role or assigned-party mismatch"""
    code = "FORBIDDEN"
    status_code = 403
    default_message = "You don't have permission to perform this action"


class NotFoundError(WorkflowError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class CaseNotFoundError(NotFoundError):
    def __init__(self, case_ref: Any):
        super().__init__(f"Case {case_ref} not found")


# ----------------------------------------------------------------------------
# State conflicts (409). The transition was attempted from a state that
# already satisfies or forecloses it.
# ----------------------------------------------------------------------------

class StateConflictError(WorkflowError):
    code = "CONFLICT"
    status_code = 409
    default_message = "Resource state conflict"


class AlreadyApprovedError(StateConflictError):
    code = "ALREADY_APPROVED"
    default_message = "Case is already approved"


class AlreadyAssignedError(StateConflictError):
    code = "ALREADY_ASSIGNED"
    default_message = "Case already has an assigned lawyer"


class AlreadySignedError(StateConflictError):
    code = "ALREADY_SIGNED"
    default_message = "Order is already signed"


class RequestExistsError(StateConflictError):
    code = "REQUEST_EXISTS"
    default_message = "A pending assignment request already exists for this case"


class AlreadyReviewedError(StateConflictError):
    code = "ALREADY_REVIEWED"
    default_message = "This item has already been reviewed"


class InvalidTransitionError(StateConflictError):
    code = "INVALID_TRANSITION"
    default_message = "Transition is not allowed from the current state"


class VersionConflictError(StateConflictError):
    """Optimistic concurrency check failed"""
    code = "CONFLICT"
    default_message = "The resource was modified by another request; reload and retry"
