from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterator, Optional

import requests

from .base import AIClient, check_response, iter_lines_until

_API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"


def _candidate_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = candidates[0].get("content", {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts)


class GeminiClient(AIClient):
    """HTTP client for Gemini via Google AI Studio API.

    Environment:
      - GOOGLE_API_KEY (required)
      - GEMINI_MODEL (default: gemini-1.5-flash)
    """

    def __init__(self) -> None:
        self.api_key = os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise RuntimeError("GOOGLE_API_KEY is required for Gemini backend")
        self.model = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")

    def _payload(self, prompt: str, *, system: Optional[str], temperature: float, json_mode: bool) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {"temperature": temperature}
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        json_mode: bool = False,
        temperature: float = 0.2,
        timeout: float = 60,
    ) -> str:
        url = f"{_API_ROOT}/{self.model}:generateContent?key={self.api_key}"
        payload = self._payload(prompt, system=system, temperature=temperature, json_mode=json_mode)
        resp = requests.post(url, json=payload, timeout=timeout)
        check_response(resp)
        return _candidate_text(resp.json()).strip()

    def stream(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.4,
        timeout: float = 300,
    ) -> Iterator[str]:
        url = f"{_API_ROOT}/{self.model}:streamGenerateContent?alt=sse&key={self.api_key}"
        payload = self._payload(prompt, system=system, temperature=temperature, json_mode=False)
        with requests.post(url, json=payload, stream=True, timeout=timeout) as resp:
            check_response(resp)
            for line in iter_lines_until(resp, timeout=timeout):
                if not line.startswith("data:"):
                    continue
                chunk = _candidate_text(json.loads(line[len("data:"):].strip()))
                if chunk:
                    yield chunk
