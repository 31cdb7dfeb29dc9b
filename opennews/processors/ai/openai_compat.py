from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterator, List, Optional

import requests

from .base import AIClient, check_response, iter_lines_until


class OpenAICompatibleClient(AIClient):
    """Client for any OpenAI-compatible chat completions endpoint (OpenAI, OpenRouter, vLLM, ...).

    Environment:
      - OPENAI_API_KEY (required)
      - OPENAI_BASE_URL (default: https://api.openai.com/v1)
      - OPENAI_MODEL (default: gpt-4o-mini)
    """

    def __init__(self) -> None:
        self.api_key = os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is required for the openai backend")
        self.base_url = os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/")
        self.model = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    @staticmethod
    def _messages(prompt: str, system: Optional[str]) -> List[Dict[str, str]]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        json_mode: bool = False,
        temperature: float = 0.2,
        timeout: float = 60,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": self._messages(prompt, system),
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        resp = requests.post(f"{self.base_url}/chat/completions", json=payload, headers=self._headers(), timeout=timeout)
        check_response(resp)
        choices = resp.json().get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message", {}).get("content") or "").strip()

    def stream(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.4,
        timeout: float = 300,
    ) -> Iterator[str]:
        payload = {
            "model": self.model,
            "messages": self._messages(prompt, system),
            "temperature": temperature,
            "stream": True,
        }
        with requests.post(
            f"{self.base_url}/chat/completions",
            json=payload,
            headers=self._headers(),
            stream=True,
            timeout=timeout,
        ) as resp:
            check_response(resp)
            for line in iter_lines_until(resp, timeout=timeout):
                if not line.startswith("data:"):
                    continue
                body = line[len("data:"):].strip()
                if body == "[DONE]":
                    break
                choices = json.loads(body).get("choices") or []
                if not choices:
                    continue
                chunk = choices[0].get("delta", {}).get("content") or ""
                if chunk:
                    yield chunk
