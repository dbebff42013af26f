"""Deployment outcome notifications with protocol-based swappable implementations.

Production code uses ``DiscordNotifier`` which posts to a channel through the
Discord bot REST API.  Tests use ``InMemoryNotifier`` which records messages
for assertion without network access.
"""

from __future__ import annotations

from typing import Protocol

import httpx

from deployhook.errors import NotifyError

DISCORD_API_BASE = "https://discord.com/api/v10"


class Notifier(Protocol):
    """Protocol for sending a text message to a named target."""

    async def notify(self, target: str, message: str) -> None:
        """Deliver ``message`` to ``target``.

        Raises:
            NotifyError: If the message could not be delivered.
        """
        ...


class DiscordNotifier:
    """Send messages to Discord channels as a bot user.

    ``target`` is the channel ID.  A caller may pass a shared
    ``httpx.AsyncClient``; otherwise a short-lived client is created per
    message.
    """

    def __init__(
        self,
        token: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._token = token
        self._client = client
        self._timeout = timeout

    async def notify(self, target: str, message: str) -> None:
        url = f"{DISCORD_API_BASE}/channels/{target}/messages"
        headers = {"Authorization": f"Bot {self._token}"}
        try:
            if self._client is not None:
                resp = await self._client.post(url, json={"content": message}, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(url, json={"content": message}, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            msg = f"Failed to notify channel {target}: {exc}"
            raise NotifyError(msg) from exc


class InMemoryNotifier:
    """Test double that records delivered messages."""

    def __init__(self) -> None:
        self.messages: list[dict[str, str]] = []

    async def notify(self, target: str, message: str) -> None:
        self.messages.append({"target": target, "message": message})
