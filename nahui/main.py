"""nahui entry point: wires the store and server together and runs them."""

from __future__ import annotations

import asyncio
import signal
import sys

import click

from nahui import __version__
from nahui.config import Settings, load_settings
from nahui.storage.store import EventStore
from nahui.utils.logging import get_logger, setup_logging
from nahui.webhooks.server import WebhookServer

log = get_logger(__name__)


class WebhookApp:
    """Owns the store and server lifetimes."""

    def __init__(self, settings: Settings, store: EventStore | None = None) -> None:
        self.settings = settings
        self.store = store or EventStore(settings.mongo)
        self.server = WebhookServer(
            settings.server,
            self.store,
            development=settings.is_development,
        )

    async def start(self) -> None:
        log.info("nahui_starting", version=__version__, environment=self.settings.environment)

        # One connection attempt; a failure leaves the store degraded
        await self.store.start()
        await self.server.start()

        log.info(
            "nahui_ready",
            webhook_url=f"http://localhost:{self.settings.server.port}{self.settings.server.webhook_path}",
            health_url=f"http://localhost:{self.settings.server.port}{self.settings.server.health_path}",
            database="connected" if self.store.is_connected else "logging only",
        )

    async def stop(self) -> None:
        log.info("nahui_stopping")
        await self.server.stop()
        await self.store.stop()
        log.info("nahui_stopped")


async def run(settings: Settings) -> None:
    app = WebhookApp(settings)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        log.info("shutdown_signal")
        stop_event.set()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler)

    try:
        await app.start()
        if sys.platform == "win32":
            while not stop_event.is_set():
                await asyncio.sleep(1)
        else:
            await stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


@click.command()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--port", type=int, default=None, help="Port to listen on (overrides PORT)")
def cli(config_path: str | None, log_level: str | None, port: int | None) -> None:
    """Start the nahui webhook server."""
    settings = load_settings(config_path)
    if log_level:
        settings.log_level = log_level
    if port is not None:
        settings.server.port = port
    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        redact_keys=settings.active_redact_keys,
    )
    asyncio.run(run(settings))


if __name__ == "__main__":
    cli()
