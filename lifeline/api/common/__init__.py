from .base_router import BaseRouter
from .decorators import handle_route_errors, log_route_call
from .exceptions import APIException, handle_service_error

__all__ = [
    "APIException",
    "BaseRouter",
    "handle_route_errors",
    "handle_service_error",
    "log_route_call",
]
