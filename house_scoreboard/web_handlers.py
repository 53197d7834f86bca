"""
Web route handlers for the house scoreboard.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from aiohttp import WSMsgType, web
from jinja2 import Environment, FileSystemLoader

from .blob_store import UploadedFile
from .database import DocumentStore
from .errors import DocumentNotFoundError, DocumentShapeError, StoreError
from .live_view import LiveView, ScoreboardSnapshot
from .models import EventSubmission, EventTemplate, House, Winner
from .repositories import COLLECTIONS

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "templates"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def rank_class(rank: int) -> str:
    """
    CSS class for a podium rank.

    @param rank: Rank starting at 1
    @return: "gold", "silver", "bronze" or an empty string
    """
    return {1: "gold", 2: "silver", 3: "bronze"}.get(rank, "")


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Handler,
) -> web.StreamResponse:
    """
    Turn scoreboard errors into JSON error responses.

    Invalid input maps to 400, missing documents to 404 and store failures
    to 503.
    """
    try:
        return await handler(request)
    except DocumentShapeError as e:
        return web.json_response({"error": str(e)}, status=400)
    except DocumentNotFoundError as e:
        return web.json_response({"error": str(e)}, status=404)
    except StoreError as e:
        logger.error("Store failure handling %s %s: %s", request.method, request.path, e)
        return web.json_response({"error": str(e)}, status=503)


async def read_json_object(request: web.Request) -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    @param request: HTTP request
    @return: Parsed body
    """
    try:
        payload = await request.json()
    except json.JSONDecodeError as e:
        raise DocumentShapeError(f"Request body is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise DocumentShapeError("Request body must be a JSON object")
    return payload


class WebHandlers:
    """Handles web routes, the JSON API and live WebSocket viewers."""

    def __init__(
        self,
        live_view: LiveView,
        store: DocumentStore,
        config: Any,
        templates_path: Optional[str] = None,
    ) -> None:
        self.live_view = live_view
        self.store = store
        self.config = config
        self.sockets: Set[web.WebSocketResponse] = set()
        self._send_tasks: Set["asyncio.Task[None]"] = set()

        self.jinja_env = Environment(
            loader=FileSystemLoader(templates_path or str(TEMPLATES_PATH)),
            auto_reload=False,
            cache_size=50,
            autoescape=True,
        )
        self.jinja_env.filters["rank_class"] = rank_class

    async def web_index(
        self,
        _: web.Request,
    ) -> web.Response:
        """
        Standings page.

        @param _: Unused request parameter
        @return: HTTP response with rendered index page
        """
        snapshot = self.live_view.snapshot

        template = self.jinja_env.get_template("index.html")
        html = template.render(
            title=self.config.get("scoreboard_name"),
            houses=snapshot.houses,
            events=snapshot.events[:10],
            winners=snapshot.winners,
            loading=snapshot.loading,
        )
        return web.Response(text=html, content_type="text/html")

    async def web_api_scoreboard(
        self,
        _: web.Request,
    ) -> web.Response:
        return web.json_response(self.live_view.snapshot.to_dict())

    async def web_api_houses(self, _: web.Request) -> web.Response:
        return web.json_response(self.live_view.snapshot.to_dict()["houses"])

    async def web_api_events(self, _: web.Request) -> web.Response:
        return web.json_response(self.live_view.snapshot.to_dict()["events"])

    async def web_api_winners(self, _: web.Request) -> web.Response:
        return web.json_response(self.live_view.snapshot.to_dict()["winners"])

    async def web_api_event_templates(self, _: web.Request) -> web.Response:
        return web.json_response(self.live_view.snapshot.to_dict()["eventTemplates"])

    async def web_api_add_event(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Record an event result and reconcile house standings.

        @param request: HTTP request with name, category, type, house, position and date
        @return: JSON response with the event id, awarded points and new standings
        """
        submission = EventSubmission.from_payload(await read_json_object(request))
        result = await self.live_view.add_event(submission)

        return web.json_response(
            {
                "id": result.event_id,
                "points": result.points,
                "houseFound": result.matched,
                "houses": [house.to_dict() for house in result.houses],
            },
            status=201,
        )

    async def web_api_update_event(self, request: web.Request) -> web.Response:
        event_id = request.match_info["event_id"]
        await self.live_view.update_event(event_id, await read_json_object(request))
        return web.json_response({"id": event_id})

    async def web_api_delete_event(self, request: web.Request) -> web.Response:
        await self.live_view.delete_event(request.match_info["event_id"])
        return web.Response(status=204)

    async def web_api_add_event_template(self, request: web.Request) -> web.Response:
        template = EventTemplate.from_document(await read_json_object(request))
        template_id = await self.live_view.add_event_template(template)
        return web.json_response({"id": template_id}, status=201)

    async def web_api_update_event_template(self, request: web.Request) -> web.Response:
        template_id = request.match_info["template_id"]
        await self.live_view.update_event_template(
            template_id, await read_json_object(request)
        )
        return web.json_response({"id": template_id})

    async def web_api_delete_event_template(self, request: web.Request) -> web.Response:
        await self.live_view.delete_event_template(request.match_info["template_id"])
        return web.Response(status=204)

    async def web_api_add_house(self, request: web.Request) -> web.Response:
        house = House.from_document(await read_json_object(request))
        house_id = await self.live_view.add_house(house)
        return web.json_response({"id": house_id}, status=201)

    async def web_api_add_winner(self, request: web.Request) -> web.Response:
        winner = Winner.from_document(await read_json_object(request))
        winner_id = await self.live_view.add_winner(winner)
        return web.json_response({"id": winner_id}, status=201)

    async def web_api_set_winner_photo(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Point a winner's photo at an existing URL.

        @param request: HTTP request with {"image": url}
        @return: JSON response echoing the stored URL
        """
        winner_id = request.match_info["winner_id"]
        payload = await read_json_object(request)
        image_url = payload.get("image")
        if not isinstance(image_url, str) or not image_url:
            raise DocumentShapeError("Field 'image' must be a non-empty string")

        await self.live_view.add_winner_photo(winner_id, image_url)
        return web.json_response({"id": winner_id, "image": image_url})

    async def web_api_upload_winner_photo(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Upload a winner photo and attach its URL to the winner.

        @param request: Multipart request with a "file" field
        @return: JSON response with the stored photo URL
        """
        winner_id = request.match_info["winner_id"]
        form = await request.post()
        file_field = form.get("file")
        if not isinstance(file_field, web.FileField):
            raise DocumentShapeError("Multipart field 'file' is required")

        upload = UploadedFile(file_field.filename, file_field.file.read())
        image_url = await self.live_view.upload_winner_photo(upload, winner_id)
        await self.live_view.add_winner_photo(winner_id, image_url)

        return web.json_response({"id": winner_id, "image": image_url}, status=201)

    async def web_api_status(
        self,
        _: web.Request,
    ) -> web.Response:
        """
        Store diagnostics: configuration, connectivity and document counts.

        @param _: Unused request parameter
        @return: JSON response describing the store
        """
        status: Dict[str, Any] = {
            "configured": self.store.configured,
            "connected": False,
            "collections": {},
            "loading": self.live_view.loading,
            "viewers": len(self.sockets),
        }
        try:
            status["collections"] = await self.store.collection_counts(COLLECTIONS)
            status["connected"] = True
        except StoreError as e:
            status["error"] = str(e)

        return web.json_response(status)

    async def web_socket(
        self,
        request: web.Request,
    ) -> web.WebSocketResponse:
        """
        Live viewer channel.

        Sends the current snapshot on connect and again after every change.
        Incoming messages are ignored.
        """
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)
        self.sockets.add(ws)
        logger.info("Viewer connected: %s", request.remote)

        try:
            await ws.send_json(self.live_view.snapshot.to_dict())
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.warning("Viewer connection error: %s", ws.exception())
        finally:
            self.sockets.discard(ws)
            logger.info("Viewer disconnected: %s", request.remote)

        return ws

    def broadcast(
        self,
        snapshot: ScoreboardSnapshot,
    ) -> None:
        """
        Push a snapshot to every connected viewer.

        Registered as a live view listener; sends run as background tasks.
        """
        if not self.sockets:
            return

        payload = snapshot.to_dict()
        for ws in list(self.sockets):
            task = asyncio.ensure_future(self._send(ws, payload))
            self._send_tasks.add(task)
            task.add_done_callback(self._send_done)

    def _send_done(self, task: "asyncio.Task[None]") -> None:
        self._send_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Snapshot push failed", exc_info=task.exception())

    async def _send(
        self,
        ws: web.WebSocketResponse,
        payload: Dict[str, Any],
    ) -> None:
        if ws.closed:
            self.sockets.discard(ws)
            return
        try:
            await ws.send_json(payload)
        except ConnectionError as e:
            logger.debug("Dropping viewer after failed send: %s", e)
            self.sockets.discard(ws)

    async def close_sockets(self) -> None:
        if self._send_tasks:
            await asyncio.wait(set(self._send_tasks))

        sockets: List[web.WebSocketResponse] = list(self.sockets)
        for ws in sockets:
            await ws.close()
        self.sockets.clear()
