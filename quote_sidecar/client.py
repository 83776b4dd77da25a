"""
dstack guest-agent client binding.

The sidecar only needs two calls from the client:

    quote = await client.get_quote(data)      # GetQuoteResponse, has replay_rtmrs()
    resp = await client.attest(data)          # AttestResponse, has .attestation

Anything exposing those coroutines can be passed to create_app().
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from typing import Any, Callable, Optional, Protocol

from dstack_sdk import AsyncDstackClient

from quote_sidecar.config import ClientConfig
from quote_sidecar.log import debug, log


class AttestationClient(Protocol):
    async def get_quote(self, report_data: bytes) -> Any: ...

    async def attest(self, report_data: bytes) -> Any: ...


class DstackClientHolder:
    """
    Builds the SDK client on first use and closes it on shutdown.

    The guest-agent socket may be mounted after the sidecar starts, so a
    failed construction is raised from the call that needed the client and
    retried on the next one.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        factory: Callable[[Optional[str]], Any] = AsyncDstackClient,
    ) -> None:
        self.endpoint = endpoint
        self._factory = factory
        self._client: Optional[Any] = None
        self._stack = AsyncExitStack()
        self._lock = asyncio.Lock()
        self.closed = False

    async def _get(self) -> Any:
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._client is None:
                client = self._factory(self.endpoint)
                if hasattr(client, "__aenter__"):
                    client = await self._stack.enter_async_context(client)
                elif hasattr(client, "aclose"):
                    self._stack.push_async_callback(client.aclose)
                debug(f"client_ready endpoint={self.endpoint or 'default'}")
                self._client = client
        return self._client

    async def get_quote(self, report_data: bytes) -> Any:
        client = await self._get()
        return await client.get_quote(report_data)

    async def attest(self, report_data: bytes) -> Any:
        client = await self._get()
        return await client.attest(report_data)

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._stack.aclose()
        except Exception as exc:
            log(f"client_close_failed error={exc}")
        self._client = None


def create_client(config: ClientConfig) -> DstackClientHolder:
    debug(f"client_init endpoint={config.endpoint or 'default'}")
    return DstackClientHolder(config.endpoint)
