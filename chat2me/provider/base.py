"""Completion provider protocol."""

from typing import Optional, Protocol


class CompletionProvider(Protocol):
    """Protocol for services that turn a user turn into a generated reply."""

    async def complete(self, text: str, system_instruction: Optional[str] = None) -> str:
        """Send one user turn and return the reply text.

        Raises:
            ProviderError: If no reply could be obtained
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
