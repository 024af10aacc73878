"""Command line entry point: python -m snowgauge [--simulator] [--port /dev/ttyUSB0] ..."""
import asyncio
import logging
import socket
import sys
from typing import Optional

import uvicorn

from snowgauge.core.config_loader import load_settings
from snowgauge.core.errors import ConfigError, ListenError
from snowgauge.core.event_hub import Broadcaster, broadcaster
from snowgauge.main import app

logger = logging.getLogger("snowgauge")

# Seconds uvicorn waits for open streams before forcing shutdown
GRACEFUL_SHUTDOWN_TIMEOUT = 5


def setup_logging(debug: bool):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def bind_listener(host: str, port: int) -> socket.socket:
    """Bind the HTTP listening socket up front so a bind failure is reported as ListenError."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as e:
        sock.close()
        raise ListenError(f"Cannot listen on {host}:{port}: {e}") from e
    return sock


class GaugeServer(uvicorn.Server):
    """
    uvicorn server that ends every reading stream as soon as shutdown is requested.
    uvicorn waits for open connections before running the lifespan shutdown,
    and the streams would otherwise only end inside that shutdown.
    """

    def __init__(self, config: uvicorn.Config, broadcaster: Broadcaster):
        super().__init__(config)
        self.broadcaster = broadcaster
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def serve(self, sockets=None):
        self._loop = asyncio.get_running_loop()
        await super().serve(sockets=sockets)

    def handle_exit(self, sig, frame):
        # Runs in signal context, so the broadcaster lock is only taken from the loop
        if self._loop is not None and not self.should_exit:
            self._loop.call_soon_threadsafe(self.broadcaster.close)
        super().handle_exit(sig, frame)


def main(argv: Optional[list[str]] = None) -> int:
    try:
        settings = load_settings(sys.argv[1:] if argv is None else argv)
    except ConfigError:
        # Already logged field by field
        return 1

    setup_logging(settings.debug)
    host, port = settings.listen_host_port()
    try:
        sock = bind_listener(host, port)
    except ListenError as e:
        logger.error(str(e))
        return 1

    app.state.settings = settings
    config = uvicorn.Config(app, log_config=None, timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_TIMEOUT)
    server = GaugeServer(config, broadcaster)
    logger.info(f"Streaming server listening on {host}:{port}")
    server.run(sockets=[sock])
    logger.info("Server stopped, exiting")
    return 0


if __name__ == "__main__":
    sys.exit(main())
