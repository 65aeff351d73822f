"""
Error taxonomy shared by the stores, the draft generator and the wizard.

Not-found and backend failures travel inside ``Err`` results rather than being
raised; validation and wizard errors are raised and mapped to HTTP responses
by the API layer.
"""
from typing import Dict, Optional


class ServiceError(Exception):
    """Base class for all care-plan service errors."""


class NotFoundError(ServiceError):
    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class BackendError(ServiceError):
    """The persistence backend failed or was unreachable."""

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        message = f"Backend failure during {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class AuthenticationFailed(ServiceError):
    """Sign-in rejected: unknown account, wrong password or disabled user."""


class GenerationError(ServiceError):
    """The external text-generation call failed, timed out or was blocked."""


class ValidationFailed(ServiceError):
    """Form input was rejected; ``errors`` maps field name to inline message."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__(f"Validation failed for: {', '.join(sorted(errors))}")


class WizardStateError(ServiceError):
    """An action was attempted in a wizard step that does not allow it."""
