import logging

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for service layer errors."""

    def __init__(self, message="An internal service error occurred.", status_code=500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed input, rejected before any gateway call."""

    def __init__(self, message="Invalid input."):
        super().__init__(message, status_code=422)


class InvalidParticipantsError(ValidationError):
    def __init__(self, message="A conversation needs two different participants."):
        super().__init__(message)


class LocationUnavailableError(ValidationError):
    def __init__(
        self,
        message="No location fix is available. Enable location services and try again.",
    ):
        super().__init__(message)


class NotAuthorizedError(ServiceError):
    def __init__(self, message="User not authorized for this action."):
        super().__init__(message, status_code=403)


class ConversationNotFoundError(ServiceError):
    def __init__(self, message="Conversation not found."):
        super().__init__(message, status_code=404)


class UserNotFoundError(ServiceError):
    def __init__(self, message="User not found."):
        super().__init__(message, status_code=404)


class ReportNotFoundError(ServiceError):
    def __init__(self, message="Emergency report not found."):
        super().__init__(message, status_code=404)


class InvalidTransitionError(ServiceError):
    """A status change the report lifecycle does not allow."""

    def __init__(self, message="Status transition not allowed."):
        super().__init__(message, status_code=409)


class GatewayError(ServiceError):
    """Transport or query failure in the persistence layer."""

    def __init__(self, message="A database error occurred."):
        super().__init__(message, status_code=500)


class GatewayTimeoutError(GatewayError, TimeoutError):
    def __init__(self, message="The database did not answer in time."):
        super().__init__(message)
        self.status_code = 504


class SubscriptionSetupError(ServiceError):
    """Realtime registration failed. Callers may keep rendering fetched data."""

    def __init__(self, message="Realtime subscription could not be set up."):
        super().__init__(message, status_code=503)
