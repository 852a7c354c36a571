"""OpenAI-compatible chat-completion provider."""

import asyncio
import logging
import aiohttp
from typing import Any, Dict, List, Optional

from ..config import ProviderSettings
from ..errors import ProviderHTTPError, ProviderTimeoutError, TransportError

logger = logging.getLogger(__name__)


class OpenAIChatProvider:
    """Sends single user turns to a chat-completion endpoint and returns the reply."""

    def __init__(self, settings: ProviderSettings):
        """Initialize the provider.

        Args:
            settings: Endpoint, model, timeout and API key resolved at startup
        """
        self.settings = settings
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(f"OpenAIChatProvider initialized with model: {settings.model}")

    def build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json"
        }

    def build_payload(self, text: str, system_instruction: Optional[str] = None) -> Dict[str, Any]:
        """Assemble the JSON body: optional system message, then the user turn."""
        messages: List[Dict[str, str]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": text})
        return {
            "model": self.settings.model,
            "messages": messages,
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds)
            )
        return self._session

    async def complete(self, text: str, system_instruction: Optional[str] = None) -> str:
        """Send a user turn and get the reply.

        Args:
            text: User message
            system_instruction: Optional system message sent before the user turn

        Returns:
            Reply text from the model

        Raises:
            ProviderHTTPError: Non-200 response
            ProviderTimeoutError: No response within the configured timeout
            TransportError: Network failure or unreadable response body
        """
        payload = self.build_payload(text, system_instruction)
        logger.debug(f"Sending completion request: {len(text)} chars, "
                     f"{len(payload['messages'])} messages")

        try:
            session = self._get_session()
            async with session.post(self.settings.base_url, headers=self.build_headers(), json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.warning(f"Provider returned {response.status} {response.reason}")
                    logger.debug(f"Provider error body: {error_text[:500]}")
                    raise ProviderHTTPError(response.status, response.reason, error_text)

                result = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(self.settings.timeout_seconds) from e
        except aiohttp.ClientError as e:
            raise TransportError(str(e) or e.__class__.__name__) from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON in provider response: {e}") from e

        try:
            reply = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise TransportError(f"Unexpected provider response format: {e!r}") from e
        if not isinstance(reply, str):
            raise TransportError("Unexpected provider response format: content is not a string")

        logger.debug(f"Received completion: {len(reply)} chars")
        return reply.strip()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
