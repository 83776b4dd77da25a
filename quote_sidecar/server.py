from __future__ import annotations

import asyncio
import signal
import time
from typing import Awaitable, Callable, Optional

from aiohttp import web

from quote_sidecar import handlers
from quote_sidecar.client import AttestationClient, create_client
from quote_sidecar.config import Config, load_config
from quote_sidecar.exceptions import ConfigError, StartupError
from quote_sidecar.handlers import CLIENT_KEY, CLIENT_TIMEOUT_KEY
from quote_sidecar.log import debug, log, set_debug

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def trace_requests(request: web.Request, handler: Handler) -> web.StreamResponse:
    started = time.monotonic()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as exc:
        status = exc.status
        raise
    finally:
        elapsed_ms = (time.monotonic() - started) * 1000
        debug(f"request method={request.method} path={request.path} status={status} elapsed_ms={elapsed_ms:.1f}")


def register_routes(app: web.Application) -> None:
    app.add_routes(
        [
            web.get("/", handlers.root),
            web.get("/health", handlers.health_check),
            web.get("/quote", handlers.get_quote),
            web.get("/attest", handlers.attest),
        ]
    )


def create_app(client: AttestationClient, request_timeout: Optional[float] = None) -> web.Application:
    app = web.Application(middlewares=[trace_requests])
    app[CLIENT_KEY] = client
    app[CLIENT_TIMEOUT_KEY] = request_timeout
    register_routes(app)
    app.on_cleanup.append(close_client)
    return app


async def close_client(app: web.Application) -> None:
    aclose = getattr(app[CLIENT_KEY], "aclose", None)
    if aclose is not None:
        await aclose()
        debug("client_closed")


def install_shutdown_handlers(stop: asyncio.Event) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed = []

    def _on_signal(sig: signal.Signals) -> None:
        log(f"shutdown_signal signal={sig.name}")
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
            installed.append(sig)
        except NotImplementedError:
            # No add_signal_handler on Windows event loops; SIGINT still raises KeyboardInterrupt.
            pass
    return installed


def remove_shutdown_handlers(signals: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.remove_signal_handler(sig)


async def serve(config: Config, client: AttestationClient, stop: Optional[asyncio.Event] = None) -> None:
    """
    Serve the sidecar on config.bind_addr until ``stop`` is set.

    Without an explicit ``stop`` event, SIGINT and SIGTERM set one. On stop the
    listener closes first and in-flight requests get up to
    ``config.server.shutdown_timeout`` seconds to finish.

    Raises:
        StartupError: The listening socket could not be bound.
    """
    signals: list[signal.Signals] = []
    if stop is None:
        stop = asyncio.Event()
        signals = install_shutdown_handlers(stop)
    try:
        await _serve_until_stopped(config, client, stop)
    finally:
        remove_shutdown_handlers(signals)


async def _serve_until_stopped(config: Config, client: AttestationClient, stop: asyncio.Event) -> None:
    app = create_app(client, config.client.timeout)
    runner = web.AppRunner(app, access_log=None, shutdown_timeout=config.server.shutdown_timeout)
    await runner.setup()
    site = web.TCPSite(runner, config.server.host, config.server.port)
    try:
        await site.start()
    except OSError as exc:
        await runner.cleanup()
        raise StartupError(f"Failed to bind server to address {config.bind_addr}: {exc}", config.bind_addr)

    log(f"server_bound addr={config.bind_addr}")
    try:
        await stop.wait()
        log("shutdown_started draining in-flight requests")
    finally:
        await runner.cleanup()
    log("shutdown_complete")


def main() -> None:
    try:
        config = load_config()
    except ConfigError as exc:
        log(f"error: config_invalid {exc}")
        raise SystemExit(1)

    set_debug(config.log.debug)
    debug(f"config_loaded {config}")
    log(f"starting addr={config.bind_addr}")

    client = create_client(config.client)
    try:
        asyncio.run(serve(config, client))
    except StartupError as exc:
        log(f"error: bind_failed {exc}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
