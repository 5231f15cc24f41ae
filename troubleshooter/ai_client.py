"""
LLM Client

Sends chat completion requests to an OpenAI-compatible API.
"""

import os
import httpx
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class AIClient:
    """
    Thin async client for the chat completions endpoint.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: API key (falls back to OPENAI_API_KEY env var)
            base_url: API root, without trailing slash
            model: Chat model name
            timeout: Request timeout in seconds (default: 120s for LLM inference)
            transport: Optional httpx transport, used by tests
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

        if self.api_key:
            logger.info(f"AI client initialized for {self.base_url} (model: {self.model})")
        else:
            logger.warning("AI client initialized without an API key")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def chat(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Request a chat completion.

        Args:
            messages: Full message list including the system prompt

        Returns:
            Dict with keys:
                - 'text': Assistant reply ('' if the model returned nothing)
                - 'model': Model that answered
                - 'usage': prompt/completion/total token counts

        Raises:
            RuntimeError: If the request fails or no API key is configured
        """
        if not self.api_key:
            raise RuntimeError("OpenAI API key not configured on server")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": 0.7,
            "max_tokens": 3000,
            "top_p": 0.95
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Chat completion failed with HTTP {status}")
            if status == 401:
                raise RuntimeError("OpenAI API authentication failed")
            if status == 429:
                raise RuntimeError("Rate limit exceeded. Please try again later.")
            raise RuntimeError(f"LLM request failed: {e}")
        except httpx.HTTPError as e:
            logger.error(f"Chat completion request failed: {e}")
            raise RuntimeError(f"Failed to communicate with LLM API: {e}")

        data = response.json()
        choices = data.get("choices") or [{}]
        text = ((choices[0] or {}).get("message") or {}).get("content") or ""
        usage = data.get("usage") or {}

        return {
            "text": text,
            "model": data.get("model", self.model),
            "usage": {
                "prompt_tokens": usage.get("prompt_tokens") or 0,
                "completion_tokens": usage.get("completion_tokens") or 0,
                "total_tokens": usage.get("total_tokens") or 0,
            },
        }

    async def close(self):
        if self.client:
            await self.client.aclose()
