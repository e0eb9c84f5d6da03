"""Domain error types.

Every error carries the HTTP status it maps to; the API layer renders them as
``{"error": message}``. "Already processed" outcomes of guarded transitions are
not errors and never appear here.
"""


class DomainError(Exception):
    """Base domain error."""

    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    """Missing or malformed required field."""

    status_code = 400


class ConflictError(DomainError):
    """Request is well-formed but violates a domain rule (e.g. reassigning to the same driver)."""

    status_code = 400


class AuthenticationError(DomainError):
    """Missing or invalid credential."""

    status_code = 401

    def __init__(self, message: str = "Missing authorization token"):
        super().__init__(message)


class ForbiddenError(DomainError):
    """Authenticated but not permitted."""

    status_code = 403

    def __init__(self, message: str = "Forbidden: admin role required"):
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with id {identifier} not found")


class MethodNotAllowedError(DomainError):
    """Endpoint called with an unsupported HTTP method."""

    status_code = 405

    def __init__(self, message: str = "Method not allowed"):
        super().__init__(message)


class RateLimitError(DomainError):
    """Caller exceeded the admin action throttle."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded. Please wait a moment."):
        super().__init__(message)


class UpstreamStoreError(DomainError):
    """The backing store (or identity provider) rejected a read or write."""

    status_code = 500


class ConfigurationError(DomainError):
    """Server is missing required configuration."""

    status_code = 500

    def __init__(self, message: str = "Server misconfigured"):
        super().__init__(message)
