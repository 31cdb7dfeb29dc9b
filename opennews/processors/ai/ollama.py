from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterator, Optional

import requests

from ...errors import ModelContextOverflow
from .base import AIClient, check_response, is_context_overflow, iter_lines_until


class OllamaClient(AIClient):
    """HTTP client for Ollama's generate API.

    Environment:
      - OLLAMA_HOST (default: http://localhost:11434)
      - OLLAMA_MODEL (default: llama3.1:8b-instruct)
      - OLLAMA_NUM_CTX (optional context window override)
    """

    def __init__(self) -> None:
        self.host = os.environ.get("OLLAMA_HOST", "http://localhost:11434").rstrip("/")
        self.model = os.environ.get("OLLAMA_MODEL", "llama3.1:8b-instruct")
        num_ctx = os.environ.get("OLLAMA_NUM_CTX")
        self.num_ctx = int(num_ctx) if num_ctx else None

    def _payload(self, prompt: str, *, system: Optional[str], temperature: float, stream: bool) -> Dict[str, Any]:
        options: Dict[str, Any] = {"temperature": temperature}
        if self.num_ctx:
            options["num_ctx"] = self.num_ctx
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": stream,
            "options": options,
        }
        if system:
            payload["system"] = system
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
        payload = self._payload(prompt, system=system, temperature=temperature, stream=False)
        if json_mode:
            payload["format"] = "json"
        resp = requests.post(f"{self.host}/api/generate", json=payload, timeout=timeout)
        check_response(resp)
        # Ollama returns {'response': '...'}
        return resp.json().get("response", "").strip()

    def stream(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.4,
        timeout: float = 300,
    ) -> Iterator[str]:
        payload = self._payload(prompt, system=system, temperature=temperature, stream=True)
        with requests.post(f"{self.host}/api/generate", json=payload, stream=True, timeout=timeout) as resp:
            check_response(resp)
            # One JSON object per line: {"response": "...", "done": false}
            for line in iter_lines_until(resp, timeout=timeout):
                data = json.loads(line)
                if "error" in data:
                    if is_context_overflow(data["error"]):
                        raise ModelContextOverflow(data["error"])
                    raise RuntimeError(f"Ollama stream error: {data['error']}")
                chunk = data.get("response") or ""
                if chunk:
                    yield chunk
                if data.get("done"):
                    break
