"""
Chat-completion client for the upstream language model (OpenAI-compatible API).

One retry, after a short fixed delay, on connection failures and HTTP 429.
Everything else fails fast as UpstreamUnavailable or InternalError.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from .config import get_config
from .errors import InternalError, UpstreamUnavailable

logger = logging.getLogger("commission-assistant.llm")

TEMPERATURE = 0.3
MAX_TOKENS = 450
MAX_ATTEMPTS = 2

_STATUS_MESSAGES = {
    429: "AI assistant is busy, please try again shortly.",
    401: "AI assistant authentication failed (check API key).",
    400: "There was an issue with the request to the AI assistant (e.g., content policy).",
}
_UNAVAILABLE = "Sorry, the AI assistant is currently unavailable or encountered an error."


class LLMClient:
    def __init__(
        self,
        api_key: str,
        model: str,
        api_url: str,
        timeout: float = 45.0,
        retry_delay: float = 0.2,
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self.retry_delay = retry_delay

    @classmethod
    def from_config(cls) -> "LLMClient":
        cfg = get_config()
        return cls(
            api_key=cfg["llm_api_key"],
            model=cfg["llm_model"],
            api_url=cfg["llm_api_url"],
            timeout=cfg["llm_timeout"],
            retry_delay=cfg["llm_retry_delay"],
        )

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """Send the conversation and return the raw text of the first choice."""
        if not self.api_key or not self.model:
            logger.error("LLM API key or model is not configured")
            raise UpstreamUnavailable("Chatbot service is not configured.")

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        logger.debug(f"Sending {len(messages)} messages to {self.model}")

        response: Optional[httpx.Response] = None
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(1, MAX_ATTEMPTS + 1):
                try:
                    response = await client.post(self.api_url, json=payload, headers=headers)
                except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                    logger.warning(f"LLM connection failed (attempt {attempt}): {e}")
                    if attempt < MAX_ATTEMPTS:
                        await asyncio.sleep(self.retry_delay)
                        continue
                    raise UpstreamUnavailable(_UNAVAILABLE) from e
                except httpx.HTTPError as e:
                    logger.error(f"LLM request failed: {e}")
                    raise UpstreamUnavailable(_UNAVAILABLE) from e

                if response.status_code == 429 and attempt < MAX_ATTEMPTS:
                    logger.warning(f"LLM rate limited (attempt {attempt}), retrying")
                    await asyncio.sleep(self.retry_delay)
                    continue
                break

        if not 200 <= response.status_code < 300:
            logger.error(f"LLM call failed with {response.status_code}: {response.text[:500]}")
            raise UpstreamUnavailable(_STATUS_MESSAGES.get(response.status_code, _UNAVAILABLE))

        return self._extract_content(response)

    @staticmethod
    def _extract_content(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError as e:
            raise InternalError("LLM response body is not JSON") from e

        if not isinstance(data, dict):
            raise InternalError("LLM response body is not an object")
        if "error" in data:
            logger.error(f"LLM returned an error structure: {data['error']}")
            raise InternalError("The AI assistant reported an internal error.")

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise InternalError("LLM response is missing choices")

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content:
            raise InternalError("LLM response has no content")

        logger.debug(f"Raw LLM content: {content[:200]}")
        return content
