"""HTTP routes of the gateway."""

from .api_errors import ApiError, api_error_handler, gateway_error_handler
from .chat_api import router as chat_router
from .media_api import router as media_router
from .models_api import router as models_router

__all__ = [
    "ApiError",
    "api_error_handler",
    "chat_router",
    "gateway_error_handler",
    "media_router",
    "models_router",
]
