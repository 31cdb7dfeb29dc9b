from __future__ import annotations

import os
from typing import Optional

from .base import AIClient


def create_ai_client(*, backend: Optional[str] = None) -> AIClient:
    """Create an AI client based on PROCESSING_BACKEND env or explicit value.

    Supported values: "ollama" (default), "gemini" or "openai".
    """
    selected = (backend or os.environ.get("PROCESSING_BACKEND", "ollama")).lower()

    if selected == "ollama":
        from .ollama import OllamaClient  # lazy import

        return OllamaClient()
    if selected == "gemini":
        from .gemini import GeminiClient  # lazy import

        return GeminiClient()
    if selected == "openai":
        from .openai_compat import OpenAICompatibleClient  # lazy import

        return OpenAICompatibleClient()

    raise ValueError(
        f"Unsupported PROCESSING_BACKEND '{selected}'. Use 'ollama', 'gemini' or 'openai'."
    )
