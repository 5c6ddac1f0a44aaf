"""Entry point for the notes search server."""

import asyncio
import contextlib
import signal
import sys

import structlog
import uvicorn

from mdump.app import create_app
from mdump.config import Settings
from mdump.logging import configure_logging

logger = structlog.get_logger()


async def serve(settings: Settings) -> None:
    """Run uvicorn until SIGTERM/SIGINT, then shut down cleanly.

    Args:
        settings: Server configuration.
    """
    app = create_app(settings)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
        timeout_graceful_shutdown=int(settings.shutdown_timeout),
    )
    server = uvicorn.Server(config)

    def request_exit(sig: signal.Signals) -> None:
        logger.info("shutdown_triggered", signal=sig.name)
        server.should_exit = True

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, request_exit, sig)

    await server.serve()


def main() -> None:
    """Entry point for python -m mdump."""
    settings = Settings()
    configure_logging(debug=settings.debug)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(settings))

    sys.exit(0)


if __name__ == "__main__":
    main()
