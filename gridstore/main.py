"""
Process entry point for gridstore-server.

Startup order:
1. Read ServerConfig from the environment (exit 1 if it is invalid)
2. Install the root log handler
3. Create or upgrade the SQLite schema
4. Serve the REST API until SIGTERM or SIGINT arrives

Usage:
    gridstore-server
    python -m gridstore.main

Invariants:
    - No request is served before the schema exists
    - Stopping cancels the HTTP task and awaits its cleanup before exit

How to change safely:
    - Anything started in Server.start must be torn down in Server.stop
    - Keep signal handling in main(); Server stays usable from tests
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter

from .api.http_server import run_http_server
from .config import ServerConfig
from .store.grid_store import GridStore

logger = logging.getLogger(__name__)

TEXT_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(config: ServerConfig) -> None:
    """Replace the root handlers with a single stderr handler.

    Args:
        config: Server configuration
    """
    observability = config.observability
    if observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_LOG_FORMAT)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [stream]
    root.setLevel(getattr(logging, observability.log_level.upper(), logging.INFO))

    # One line per request is too chatty at INFO
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class Server:
    """Owns the store and the HTTP task for one process.

    Attributes:
        config: Server configuration
        store: Grid store, set once start() has run
        http_task: Task running the HTTP server

    Example:
        >>> server = Server(ServerConfig())
        >>> asyncio.get_running_loop().call_later(5, server.request_shutdown)
        >>> await server.start()  # returns after the shutdown request
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        self.config = config if config is not None else ServerConfig.from_env()
        self.store: GridStore | None = None
        self.http_task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self.http_task is not None and not self.http_task.done()

    async def start(self) -> None:
        """Bring the server up and wait until shutdown or HTTP failure."""
        if self.running:
            logger.warning("start() called on a running server")
            return

        self.config.log_config()

        try:
            self.store = GridStore.from_config(self.config.storage, self.config.write)
            await self.store.initialize()
            self.http_task = asyncio.create_task(run_http_server(self.store, self.config.http))
            logger.info("GridStore server up")

            waiter = asyncio.create_task(self._stopping.wait())
            done, _ = await asyncio.wait(
                {waiter, self.http_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            waiter.cancel()
            if self.http_task in done:
                # Re-raises a bind failure or a crash inside the HTTP loop
                self.http_task.result()

        except Exception as e:
            logger.error(f"GridStore server failed: {e}", exc_info=True)
            await self.stop()
            raise

    async def stop(self) -> None:
        """Cancel the HTTP task and wait for its runner cleanup."""
        task, self.http_task = self.http_task, None
        if task is None:
            return

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("GridStore server down")

    def request_shutdown(self) -> None:
        """Make start() return; safe to call from a signal handler."""
        self._stopping.set()


async def serve(config: ServerConfig) -> None:
    """Run a Server on the current loop with SIGTERM/SIGINT wired to shutdown."""
    server = Server(config)
    loop = asyncio.get_running_loop()

    def on_signal(signum: int) -> None:
        logger.info(f"Got {signal.Signals(signum).name}, shutting down")
        server.request_shutdown()

    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, on_signal, signum)

    try:
        await server.start()
    finally:
        await server.stop()


def main() -> None:
    """Console script entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    asyncio.run(serve(config))


if __name__ == "__main__":
    main()
