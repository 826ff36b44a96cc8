"""
Chat-completions adapter for OpenAI-compatible providers (Groq, OpenRouter).
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import (
    InvalidInputError,
    ProviderQuotaExceededError,
    ProviderTimeoutError,
    ProviderTransientError,
)
from shared.logging import get_logger
from ..domain.models import SummaryMode
from .base import ProviderClient
from .prompts import MAX_TOKENS, build_messages, clean_completion

INPUT_REJECTED_STATUSES = (400, 413, 422)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class OpenAICompatibleProvider(ProviderClient):
    """Calls ``POST {base_url}/chat/completions`` and maps the outcome to the provider contract."""

    def __init__(
        self,
        name: str,
        base_url: str,
        model: str,
        api_key: str,
        *,
        extra_headers: Optional[Dict[str, str]] = None,
        temperature: float = 0.3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(name)
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.temperature = temperature
        self.logger = get_logger(f"summarizer.provider.{name}")
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            **(extra_headers or {}),
        }
        self._transport = transport

    def _build_payload(self, text: str, context: Optional[str], mode: SummaryMode) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": build_messages(text, context, mode),
            "temperature": self.temperature,
            "max_tokens": MAX_TOKENS[mode],
        }

    async def invoke(
        self,
        text: str,
        timeout: float,
        *,
        context: Optional[str] = None,
        mode: SummaryMode = SummaryMode.BRIEF,
    ) -> str:
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(text, context, mode)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(self.name, timeout) from exc
        except httpx.HTTPError as exc:
            self.logger.warning("Provider transport error", url=url, error=str(exc))
            raise ProviderTransientError(self.name, f"Transport error: {exc}") from exc

        if response.status_code == 200:
            return self._extract_summary(response)

        details = {"status_code": response.status_code, "body": response.text[:500]}

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            self.logger.warning("Provider quota exhausted", retry_after=retry_after)
            raise ProviderQuotaExceededError(self.name, retry_after=retry_after, details=details)

        if response.status_code in INPUT_REJECTED_STATUSES:
            self.logger.info("Provider rejected input", status_code=response.status_code)
            raise InvalidInputError(
                f"{self.name} rejected the input",
                details={"provider": self.name, **details}
            )

        self.logger.error(
            "Provider request failed",
            url=url,
            status_code=response.status_code,
            response=response.text[:500]
        )
        raise ProviderTransientError(self.name, f"Unexpected status {response.status_code}", details)

    def _extract_summary(self, response: httpx.Response) -> str:
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ProviderTransientError(self.name, f"Malformed completion: {exc}") from exc

        summary = clean_completion(content or "")
        if not summary:
            raise ProviderTransientError(self.name, "Empty completion")
        return summary
