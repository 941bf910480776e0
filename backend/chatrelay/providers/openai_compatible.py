"""
OpenAI-compatible completion provider (Moonshot/Kimi, OpenAI, vLLM, Ollama, ...).
"""

from typing import Optional

import httpx

from chatrelay.config import Settings
from chatrelay.providers.base import DEFAULT_TIMEOUT, BaseProvider

DEFAULT_TEMPERATURE = 0.7


class OpenAICompatibleProvider(BaseProvider):
    """Streams ``POST {base_url}/chat/completions`` responses."""

    name = "openai-compatible"
    endpoint = "/chat/completions"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize an OpenAI-compatible provider.

        Args:
            api_key: Bearer token (some local servers don't require auth)
            model: The model to use
            base_url: The base URL of the API (e.g., https://api.moonshot.cn/v1)
            temperature: Sampling temperature sent with every request
            timeout: Seconds allowed for connect and for each read
            transport: Optional httpx transport, used by tests
        """
        super().__init__(api_key, model, base_url, timeout=timeout, transport=transport)
        self.temperature = temperature

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "OpenAICompatibleProvider":
        return cls(
            api_key=settings.api_key,
            model=settings.model,
            base_url=settings.api_base_url,
            temperature=settings.temperature,
            timeout=settings.provider_timeout,
            transport=transport,
        )

    def build_payload(self, message: str) -> dict:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": message}],
            "stream": True,
            "temperature": self.temperature,
        }
