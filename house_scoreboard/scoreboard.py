"""
Main ScoreboardSystem class that orchestrates all components.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from aiohttp import web, web_runner
import aiohttp_cors

from .blob_store import BlobStore
from .config import ScoreboardConfig
from .database import DocumentStore
from .errors import StoreError
from .live_view import LiveView
from .reconciliation import RankReconciler
from .repositories import (
    EventTemplatesRepository,
    EventsRepository,
    HousesRepository,
    WinnersRepository,
)
from .seed import seed_demo_data
from .web_handlers import WebHandlers, error_middleware

logger = logging.getLogger(__name__)


class ScoreboardSystem:
    """House scoreboard with a live view and a web interface."""

    # Seconds between live view start attempts after a store failure
    live_view_retry_delay = 5.0

    def __init__(
        self,
        config: ScoreboardConfig,
        database: Optional[str] = None,
    ) -> None:
        self.config = config

        if database is None:
            database = config.get("store", "database")
        self.store = DocumentStore(database)
        self.blob_store = BlobStore(
            config.get("blob_store", "root"),
            config.get("blob_store", "base_url"),
        )

        self.houses = HousesRepository(self.store)
        self.events = EventsRepository(self.store)
        self.winners = WinnersRepository(self.store, self.blob_store)
        self.event_templates = EventTemplatesRepository(self.store)

        self.reconciler = RankReconciler(
            self.houses,
            self.events,
            mode=config.get("reconciliation", "mode"),
            max_retries=config.get("reconciliation", "max_retries"),
        )
        self.live_view = LiveView(
            self.houses,
            self.events,
            self.winners,
            self.event_templates,
            self.reconciler,
            loading_mode=config.get("live_view", "loading_mode"),
            settling_delay=config.get("live_view", "settling_delay"),
            bootstrap=bool(config.get("live_view", "bootstrap_houses")),
        )
        self.web_handlers = WebHandlers(self.live_view, self.store, self.config)
        self._remove_listener = self.live_view.add_listener(self.web_handlers.broadcast)
        self._live_view_retry: Optional["asyncio.Task[None]"] = None

    async def init_db(self) -> bool:
        """
        Initialize the document store.

        A misconfigured or unreachable store is logged, not raised; the
        system keeps running and every store call fails until it is fixed.

        @return: True if the store is usable
        """
        try:
            await self.store.init_db()
            return True
        except StoreError as e:
            logger.error("Document store unavailable: %s", e)
            return False

    async def seed_demo_data(self) -> bool:
        return await seed_demo_data(self.store)

    async def start_live_view(self) -> bool:
        """
        Start the live view, logging instead of raising on store failures.

        @return: True if the live view is running
        """
        try:
            await self.live_view.start()
            return True
        except StoreError as e:
            logger.error("Could not bootstrap houses: %s", e)
            return False

    async def _retry_live_view(self) -> None:
        while True:
            await asyncio.sleep(self.live_view_retry_delay)
            if await self.start_live_view():
                logger.info("Live view started after retry")
                return

    def create_app(self) -> web.Application:
        """
        Build the aiohttp application with every route.

        @return: Configured web application
        """
        app = web.Application(middlewares=[error_middleware])

        cors = aiohttp_cors.setup(
            app,
            defaults={
                "*": aiohttp_cors.ResourceOptions(
                    allow_credentials=True,
                    expose_headers="*",
                    allow_headers="*",
                    allow_methods="*",
                )
            },
        )

        handlers = self.web_handlers

        # Uploaded winner photos
        media_root = Path(self.config.get("blob_store", "root"))
        media_root.mkdir(parents=True, exist_ok=True)
        app.router.add_static(
            self.blob_store.base_url + "/", path=str(media_root), name="media"
        )

        app.router.add_get("/", handlers.web_index)
        app.router.add_get("/ws", handlers.web_socket)

        app.router.add_get("/api/scoreboard", handlers.web_api_scoreboard)
        app.router.add_get("/api/status", handlers.web_api_status)
        app.router.add_get("/api/houses", handlers.web_api_houses)
        app.router.add_post("/api/houses", handlers.web_api_add_house)
        app.router.add_get("/api/events", handlers.web_api_events)
        app.router.add_post("/api/events", handlers.web_api_add_event)
        app.router.add_patch("/api/events/{event_id}", handlers.web_api_update_event)
        app.router.add_delete("/api/events/{event_id}", handlers.web_api_delete_event)
        app.router.add_get("/api/event-templates", handlers.web_api_event_templates)
        app.router.add_post("/api/event-templates", handlers.web_api_add_event_template)
        app.router.add_patch(
            "/api/event-templates/{template_id}", handlers.web_api_update_event_template
        )
        app.router.add_delete(
            "/api/event-templates/{template_id}", handlers.web_api_delete_event_template
        )
        app.router.add_get("/api/winners", handlers.web_api_winners)
        app.router.add_post("/api/winners", handlers.web_api_add_winner)
        app.router.add_put(
            "/api/winners/{winner_id}/photo", handlers.web_api_set_winner_photo
        )
        app.router.add_post(
            "/api/winners/{winner_id}/photo", handlers.web_api_upload_winner_photo
        )

        # Add CORS to all routes except the WebSocket upgrade
        for route in list(app.router.routes()):
            if route.resource is not None and route.resource.canonical == "/ws":
                continue
            cors.add(route)

        return app

    async def start_web_server(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> web_runner.AppRunner:
        """
        Start the web server.

        @param host: Host address to bind to (default uses configured web.host)
        @param port: Port number to use (default uses configured web.port)
        @return: AppRunner instance for the web server
        """
        if host is None:
            host = self.config.get("web", "host")
        if port is None:
            port = self.config.get("web", "port")

        app_runner = web_runner.AppRunner(self.create_app())
        await app_runner.setup()

        site = web_runner.TCPSite(app_runner, host, port)
        await site.start()

        logger.info("Web server running on http://%s:%s", host, port)
        return app_runner

    async def run(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> None:
        """
        Start the live view and the web server, then serve until cancelled.

        A live view that fails to start on a configured store is retried in
        the background while the web server runs.

        @param host: Web server host address
        @param port: Web server port
        """
        if not await self.start_live_view() and self.store.configured:
            self._live_view_retry = asyncio.ensure_future(self._retry_live_view())
        web_server_runner = await self.start_web_server(host, port)

        try:
            await asyncio.Event().wait()
        finally:
            await self.shutdown(web_server_runner)

    async def shutdown(
        self,
        web_server_runner: Optional[web_runner.AppRunner] = None,
    ) -> None:
        """Close viewers, release subscriptions and stop the web server."""
        if self._live_view_retry is not None:
            self._live_view_retry.cancel()
            self._live_view_retry = None
        self._remove_listener()
        self.live_view.stop()
        await self.web_handlers.close_sockets()
        self.store.close()
        if web_server_runner is not None:
            await web_server_runner.cleanup()

    async def print_full_scoreboard(self) -> None:
        """
        Print the current house standings to the console.

        Reads straight from the store; does nothing useful if the store is
        not available.
        """
        print("\n" + "=" * 50)
        print(self.config.get("scoreboard_name").upper())
        print("=" * 50)

        try:
            houses = await self.houses.get_ordered()
            events = await self.events.get_ordered()
        except StoreError as e:
            print(f"Scoreboard unavailable: {e}")
            return

        if not houses:
            print("No houses yet")
            return

        for house in houses:
            print(f"{house.rank:2d}. {house.name:<15} Score: {house.score:4d}")

        print(f"\n{len(events)} event results recorded")
