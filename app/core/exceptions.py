from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for errors surfaced to API callers as {"error": detail}."""

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, headers: dict[str, str] | None = None):
        super().__init__(
            status_code=self.status_code_default,
            detail=message,
            headers=headers,
        )

    @property
    def message(self) -> str:
        return str(self.detail)


class AuthenticationError(AppError):
    """Raised when the caller is not authenticated."""

    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class AuthorizationError(AppError):
    """Raised when user lacks permission, including self-approval attempts."""

    status_code_default = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(message)


ForbiddenError = AuthorizationError


class ValidationError(AppError):
    """Raised when request validation fails."""

    status_code_default = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")


class ConflictError(AppError):
    """Raised on state conflicts: already-reviewed submissions, duplicate assignments."""

    status_code_default = status.HTTP_409_CONFLICT


class ExternalIntegrationError(AppError):
    """Raised when the partner system misbehaves or cannot be reached."""

    status_code_default = status.HTTP_502_BAD_GATEWAY


class WebhookSignatureError(ExternalIntegrationError):
    """Raised when a partner webhook signature is missing or invalid."""

    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class RateLimitError(AppError):
    """Raised when a sliding-window budget is exhausted."""

    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            "Rate limit exceeded",
            headers={"Retry-After": str(retry_after)},
        )


class LedgerEntryNotFoundError(NotFoundError):
    """Raised when a partner event references no known reward issuance."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Reward issuance for {reference}")


class IntegrationDisabledError(NotFoundError):
    """Raised when a workspace exists but its partner integration is switched off."""

    def __init__(self, message: str = "RewardSTACK integration not enabled for this workspace"):
        AppError.__init__(self, message)


class UnsupportedEventError(ValidationError):
    """Raised for partner events whose category or action is not handled."""


class WebhookProcessingError(AppError):
    """Raised when dispatching a verified partner event fails; the partner should retry."""

    def __init__(self, message: str = "Webhook processing failed"):
        super().__init__(message)
