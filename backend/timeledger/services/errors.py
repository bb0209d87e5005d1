"""
Error taxonomy for the approval core.

Services raise these; the API layer maps ``status_code`` / ``code`` to the
response. Messages are written to be shown to the user as-is, so they carry
the offending status, id, role or bound.
"""


class WorkflowError(Exception):
    status_code = 400
    code = "workflow_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(WorkflowError):
    status_code = 404
    code = "not_found"


class Forbidden(WorkflowError):
    status_code = 403
    code = "forbidden"


class InvalidTransition(WorkflowError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, message: str, current_status=None):
        super().__init__(message)
        self.current_status = current_status


class NotEditable(WorkflowError):
    status_code = 409
    code = "not_editable"

    def __init__(self, message: str, current_status=None):
        super().__init__(message)
        self.current_status = current_status


class InvalidHours(WorkflowError):
    status_code = 400
    code = "invalid_hours"


class ValidationError(WorkflowError):
    status_code = 400
    code = "validation_error"


class NoValidItems(WorkflowError):
    status_code = 400
    code = "no_valid_items"


class NoEligibleItems(WorkflowError):
    status_code = 400
    code = "no_eligible_items"


class HistoryImmutable(RuntimeError):
    """Raised by the ORM when something tries to rewrite an audit row."""
