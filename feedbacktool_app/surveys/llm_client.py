"""
Text generation client for AI-assisted survey copy.

Talks to an OpenAI-compatible chat completions endpoint configured through
the ``LLM_*`` settings. Every call returns a ``GenerationResult`` so callers
never have to sniff error strings out of generated text.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

from django.conf import settings
import requests

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Text generation is not configured"
REQUEST_FAILED_MESSAGE = "An error occurred while generating content"
EMPTY_OUTPUT_MESSAGE = "No text generated"

# Some providers and proxies answer 200 with an apology instead of an error
# status. Any of these substrings in the output means the call failed.
IN_BAND_ERROR_MARKERS = (
    "API key is not configured",
    "error occurred",
    "No text generated",
)


@dataclass
class GenerationResult:
    ok: bool
    text: str = ""
    error: str = ""

    @classmethod
    def success(cls, text: str) -> "GenerationResult":
        return cls(ok=True, text=text)

    @classmethod
    def failure(cls, error: str) -> "GenerationResult":
        return cls(ok=False, error=error)


def _strip_code_fences(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


class TextGenerationClient:
    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        auth_type: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
    ):
        self.endpoint = endpoint if endpoint is not None else settings.LLM_URL
        self.api_key = api_key if api_key is not None else settings.LLM_API_KEY
        self.auth_type = auth_type or settings.LLM_AUTH_TYPE
        self.timeout = timeout or settings.LLM_TIMEOUT
        self.max_retries = max(1, max_retries or settings.LLM_MAX_RETRIES)

    @property
    def is_configured(self) -> bool:
        return bool(settings.LLM_ENABLED and self.endpoint and self.api_key)

    def _headers(self) -> dict:
        # Azure APIM gateways want a subscription key, everything else a bearer token
        headers = {"Content-Type": "application/json"}
        if self.auth_type.lower() == "apim":
            headers["Ocp-Apim-Subscription-Key"] = self.api_key
        else:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> GenerationResult:
        if not self.is_configured:
            logger.warning("Text generation requested but LLM is not configured")
            return GenerationResult.failure(NOT_CONFIGURED_MESSAGE)

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        body = {
            "model": model or settings.LLM_MODEL,
            "messages": messages,
            "temperature": settings.LLM_TEMPERATURE if temperature is None else temperature,
        }
        if max_tokens:
            body["max_tokens"] = max_tokens

        for attempt in range(self.max_retries):
            try:
                response = requests.post(
                    self.endpoint,
                    headers=self._headers(),
                    json=body,
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
            except (requests.RequestException, ValueError) as e:
                logger.error(f"LLM request failed (attempt {attempt + 1}): {e}")
                continue

            return self._parse(data)

        return GenerationResult.failure(REQUEST_FAILED_MESSAGE)

    def _parse(self, data) -> GenerationResult:
        content = None
        if isinstance(data, dict):
            if data.get("choices"):
                content = (data["choices"][0].get("message") or {}).get("content")
            elif "content" in data:
                content = data["content"]
            else:
                logger.error(f"Unexpected response format: {list(data.keys())}")
                return GenerationResult.failure(REQUEST_FAILED_MESSAGE)

        text = _strip_code_fences(content or "")
        if not text:
            return GenerationResult.failure(EMPTY_OUTPUT_MESSAGE)

        lowered = text.lower()
        for marker in IN_BAND_ERROR_MARKERS:
            if marker.lower() in lowered:
                logger.warning(f"LLM returned an in-band error: {text[:100]}")
                return GenerationResult.failure(text)

        return GenerationResult.success(text)
