import logging
from functools import wraps

from fastapi import HTTPException, status

from lifeline.services.exceptions import GatewayError, ServiceError

from .exceptions import handle_service_error

logger = logging.getLogger(__name__)


def log_route_call(func):
    """Logs entry to and exit from a route, and any exception it raises."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        route_logger = logging.getLogger(func.__module__)
        logged_kwargs = {k: repr(v) for k, v in kwargs.items()}

        route_logger.info(f"Entering route: {func.__name__} (kwargs: {logged_kwargs})")
        try:
            result = await func(*args, **kwargs)
            route_logger.info(f"Successfully exited route: {func.__name__}")
            return result
        except Exception as e:
            route_logger.error(
                f"Error during route: {func.__name__}. "
                f"Exception: {type(e).__name__} - {e}"
            )
            raise

    return wrapper


def handle_route_errors(func):
    """
    Turns service-layer exceptions raised by a route into HTTP errors.
    Anything that is neither a ServiceError nor an HTTPException becomes a 500.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except GatewayError as e:
            logger.error(f"Gateway error in {func.__name__} route: {e}", exc_info=True)
            handle_service_error(e)
        except ServiceError as e:
            logger.info(f"Service error in {func.__name__} route: {e}")
            handle_service_error(e)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error in {func.__name__} route: {e}", exc_info=True
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="An unexpected server error occurred.",
            )

    return wrapper
