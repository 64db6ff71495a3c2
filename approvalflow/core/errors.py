"""Error taxonomy for the approval engine.

Every error carries a machine-readable ``kind`` and the HTTP status the API
layer maps it to. Validation, lookup, authorization and transition errors are
raised before any write; sync and notification failures never surface as
exceptions to callers of the workflow service.
"""

from typing import Optional


class ApprovalError(Exception):
    """Base class for all workflow engine errors."""

    kind = "approval_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ApprovalError):
    """Malformed input to submit/assign/setStatus or a settings update."""

    kind = "validation_error"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(ApprovalError):
    """Unknown workflow id or unknown user."""

    kind = "not_found"
    status_code = 404


class ForbiddenError(ApprovalError):
    """Actor lacks the required role or assignment."""

    kind = "forbidden"
    status_code = 403


class InvalidTransitionError(ApprovalError):
    """Status change on a terminal item or to a non-adjacent state."""

    kind = "invalid_transition"
    status_code = 409

    def __init__(self, message: str, from_state: Optional[str] = None, transition: Optional[str] = None):
        super().__init__(message)
        self.from_state = from_state
        self.transition = transition


class UnsupportedModuleTypeError(ApprovalError):
    """No module status handler is registered for a module type."""

    kind = "unsupported_module_type"
    status_code = 500

    def __init__(self, module_type: str):
        super().__init__(f"No module status handler registered for '{module_type}'")
        self.module_type = module_type
