import logging
from typing import Any

from fastapi import HTTPException, status

from lifeline.services.exceptions import (
    ConversationNotFoundError,
    GatewayError,
    GatewayTimeoutError,
    InvalidTransitionError,
    NotAuthorizedError,
    ReportNotFoundError,
    ServiceError,
    SubscriptionSetupError,
    UserNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class APIException(HTTPException):
    """Base class for API specific exceptions."""

    def __init__(
        self, status_code: int, detail: Any = None, headers: dict | None = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class NotFoundError(APIException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UnprocessableError(APIException):
    def __init__(self, detail: str = "Invalid input"):
        # 422 constant was renamed across Starlette releases.
        super().__init__(status_code=422, detail=detail)


class ForbiddenError(APIException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConflictError(APIException):
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InternalServerError(APIException):
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail
        )


class GatewayTimeoutHTTPError(APIException):
    def __init__(self, detail: str = "Upstream timed out"):
        super().__init__(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=detail)


class ServiceUnavailableError(APIException):
    def __init__(self, detail: str = "Service unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail
        )


def handle_service_error(e: ServiceError):
    """
    Maps a ServiceError onto the matching APIException and raises it.
    Called by the @handle_route_errors decorator.
    """
    message = getattr(e, "message", str(e))
    logger.warning(f"Handling service error: {e.__class__.__name__} - {message}")

    if isinstance(e, (ConversationNotFoundError, UserNotFoundError, ReportNotFoundError)):
        raise NotFoundError(detail=message)
    elif isinstance(e, ValidationError):
        raise UnprocessableError(detail=message)
    elif isinstance(e, NotAuthorizedError):
        raise ForbiddenError(detail=message)
    elif isinstance(e, InvalidTransitionError):
        raise ConflictError(detail=message)
    elif isinstance(e, GatewayTimeoutError):
        raise GatewayTimeoutHTTPError(detail=message)
    elif isinstance(e, GatewayError):
        raise InternalServerError(detail="A database error occurred.")
    elif isinstance(e, SubscriptionSetupError):
        raise ServiceUnavailableError(detail=message)
    else:
        raise APIException(
            status_code=getattr(e, "status_code", status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=message or "A service error occurred.",
        )
