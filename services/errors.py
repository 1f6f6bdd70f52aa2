"""Errors raised by the data-access layer.

Field validation failures are not here: forms and validators use Django's
own ``ValidationError`` and never reach the network layer.
"""


class ExpenseTrackerError(Exception):
    """Base exception for all expense tracker errors.

    ``message`` is always safe to show to the user.
    """

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ConfigurationError(ExpenseTrackerError, RuntimeError):
    """Raised when the Supabase credentials are missing."""

    def __init__(self, message: str = "Supabase client not initialized. Please check your environment variables."):
        super().__init__(message, status_code=500)


class ConflictError(ExpenseTrackerError):
    """Raised on a duplicate category name or a blocked category deletion."""

    def __init__(self, message: str = "Resource conflict", usage_count: int = None):
        self.usage_count = usage_count
        super().__init__(message, status_code=409)


class TransientServiceError(ExpenseTrackerError):
    """Raised for any other failure reported by the data service."""

    def __init__(self, message: str = "Data service request failed"):
        super().__init__(message, status_code=503)
