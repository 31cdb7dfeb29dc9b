"""Model backend selection and clients (Ollama, Gemini, OpenAI-compatible)."""

from .base import AIClient
from .factory import create_ai_client
from .structured import generate_json

__all__ = ["AIClient", "create_ai_client", "generate_json"]
