"""Generation services exposed to the HTTP layer."""

from .chat_service import ChatService
from .media_generation import MediaGenerationService

__all__ = ["ChatService", "MediaGenerationService"]
