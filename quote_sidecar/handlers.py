from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Optional

from aiohttp import web

from quote_sidecar.client import AttestationClient
from quote_sidecar.exceptions import ClientTimeoutError
from quote_sidecar.log import log

SERVICE_NAME = "dstack-quote-sidecar"
DEFAULT_DATA = b"hello world"

CLIENT_KEY = web.AppKey("client", AttestationClient)
CLIENT_TIMEOUT_KEY = web.AppKey("client_timeout", Optional[float])


def request_data(request: web.Request) -> bytes:
    """Raw bytes of the ``data`` query parameter, or DEFAULT_DATA when absent."""
    data = request.query.get("data")
    if data is None:
        return DEFAULT_DATA
    return data.encode("utf-8")


async def _call_client(request: web.Request, call: Awaitable[Any]) -> Any:
    timeout = request.app.get(CLIENT_TIMEOUT_KEY)
    if timeout is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError:
        raise ClientTimeoutError(timeout)


def _json_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return value


async def root(_: web.Request) -> web.Response:
    """Service name and the current UTC time, for discovery and connectivity checks."""
    return web.json_response(
        {
            "service": SERVICE_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


async def health_check(_: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def get_quote(request: web.Request) -> web.Response:
    """
    Quote over ``data`` (default "hello world") plus the RTMRs replayed from its event log.

    Client failures are reported as ``{"error": ...}`` with status 200.
    """
    client = request.app[CLIENT_KEY]
    data = request_data(request)

    try:
        quote = await _call_client(request, client.get_quote(data))
    except Exception as exc:
        log(f"quote_failed error={exc}")
        return web.json_response({"error": f"Failed to get quote: {exc}"})

    try:
        rtmrs = quote.replay_rtmrs()
    except Exception as exc:
        log(f"rtmr_replay_failed error={exc}")
        return web.json_response({"error": f"Failed to replay RTMRs: {exc}"})

    return web.json_response({"quote": repr(quote), "rtmrs": repr(rtmrs)})


async def attest(request: web.Request) -> web.Response:
    """
    Attestation over ``data`` (default "hello world").

    Client failures are reported as ``{"error": ...}`` with status 200.
    """
    client = request.app[CLIENT_KEY]
    data = request_data(request)

    try:
        resp = await _call_client(request, client.attest(data))
    except Exception as exc:
        log(f"attest_failed error={exc}")
        return web.json_response({"error": f"Failed to attest: {exc}"})

    return web.json_response({"attestation": _json_value(resp.attestation)})
