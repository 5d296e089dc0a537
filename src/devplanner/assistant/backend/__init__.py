"""Model gateway implementations."""

from devplanner.assistant.backend.base import ModelGateway, ModelInvocationError
from devplanner.assistant.backend.echo import EchoGateway
from devplanner.assistant.backend.gemini import GeminiGateway

__all__ = [
    "EchoGateway",
    "GeminiGateway",
    "ModelGateway",
    "ModelInvocationError",
]
