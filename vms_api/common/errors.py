# vms_api/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .http import fail


class APIError(Exception):
    """Custom API Error class."""

    code = "API_ERROR"
    status_code = 400
    message = "Request failed"

    def __init__(self, message=None, code=None, status_code=None, payload=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.payload = payload


# ---------- not found (404) ----------

class NotFound(APIError):
    code = "NOT_FOUND"
    status_code = 404
    message = "Not found"


class ShiftNotFound(NotFound):
    code = "SHIFT_NOT_FOUND"
    message = "Shift not found"


class TaskNotFound(NotFound):
    code = "TASK_NOT_FOUND"
    message = "Task not found"


class AssignmentNotFound(NotFound):
    code = "ASSIGNMENT_NOT_FOUND"
    message = "Assignment not found"


class OpportunityNotFound(NotFound):
    code = "OPPORTUNITY_NOT_FOUND"
    message = "Opportunity not found"


class ApplicationNotFound(NotFound):
    code = "APPLICATION_NOT_FOUND"
    message = "Application not found"


class ResourceNotFound(NotFound):
    code = "RESOURCE_NOT_FOUND"
    message = "Resource not found"


# ---------- business-rule rejections (409) ----------

class BusinessRuleViolation(APIError):
    status_code = 409


class OverlapConflict(BusinessRuleViolation):
    code = "OVERLAP_CONFLICT"
    message = "Volunteer has overlapping assignment"


class HourCapExceeded(BusinessRuleViolation):
    code = "HOUR_CAP_EXCEEDED"
    message = "Assigning exceeds daily hours limit for volunteer"


class CapacityExceeded(BusinessRuleViolation):
    code = "CAPACITY_EXCEEDED"
    message = "Capacity exhausted"


class DuplicateAssignment(BusinessRuleViolation):
    code = "DUPLICATE_ASSIGNMENT"
    message = "Volunteer is already assigned to this shift"


class DuplicateApplication(BusinessRuleViolation):
    code = "DUPLICATE_APPLICATION"
    message = "Volunteer has already applied to this opportunity"


class ResourceUnavailable(BusinessRuleViolation):
    code = "RESOURCE_UNAVAILABLE"
    message = "Resource is not available for assignment"


class ConcurrentUpdate(BusinessRuleViolation):
    code = "CONCURRENT_UPDATE"
    message = "Schedule changed concurrently, please retry"


# ---------- state machine (409) ----------

class InvalidTransition(APIError):
    code = "INVALID_TRANSITION"
    status_code = 409
    message = "Invalid state transition"


class AlreadyCheckedIn(InvalidTransition):
    code = "ALREADY_CHECKED_IN"
    message = "You are already checked in"


class NotCheckedIn(InvalidTransition):
    code = "NOT_CHECKED_IN"
    message = "No active check-in found"


class AlreadyCheckedOut(InvalidTransition):
    code = "ALREADY_CHECKED_OUT"
    message = "Already checked out"


class ValidationFailed(APIError):
    code = "VALIDATION_FAILED"
    status_code = 422
    message = "Invalid request"


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        return fail(e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _dup(e: IntegrityError):
        return fail("Duplicate or FK constraint failed", status=409, code="CONSTRAINT_ERROR")

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        return fail("Internal server error", status=500)
