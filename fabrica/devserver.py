"""Browser live-reload server.

Pages load a small client script that opens an EventSource on the
server. Each ReloadEvent from the bus reaches the browser as one of:

    inject   stylesheets are re-fetched in place
    reload   the page reloads

Add to the theme footer while developing:

    <script src="http://localhost:35729/fabrica/client.js"></script>
"""

import asyncio
import json
import socket
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional

import uvicorn
from sse_starlette.sse import EventSourceResponse
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from .logging import get_logger
from .reload import EventQueue, ReloadBus, ReloadEvent

logger = get_logger('devserver')

EVENTS_PATH = '/fabrica/events'
CLIENT_PATH = '/fabrica/client.js'

# The client and stream are requested from the site's pages, another origin
CORS_HEADERS = {'Access-Control-Allow-Origin': '*', 'Cache-Control': 'no-cache'}

CLIENT_JS = """\
(function () {
  var script = document.currentScript;
  var source = new EventSource(new URL('%(events)s', script.src).href);
  source.addEventListener('inject', function () {
    var links = document.querySelectorAll('link[rel="stylesheet"]');
    Array.prototype.forEach.call(links, function (link) {
      var url = new URL(link.href);
      url.searchParams.set('fabrica', Date.now());
      link.href = url.href;
    });
  });
  source.addEventListener('reload', function () {
    window.location.reload();
  });
})();
""" % {'events': EVENTS_PATH}


def reload_message(event: ReloadEvent) -> Dict[str, str]:
    """EventSource message for a reload event."""
    data = {'asset_class': event.asset_class, 'paths': list(event.paths)}
    return {
        'event': 'inject' if event.inject else 'reload',
        'data': json.dumps(data, separators=(',', ':')),
    }


async def event_stream(queue: EventQueue,
                       is_disconnected: Callable[[], Awaitable[bool]],
                       check_interval: float = 1.0) -> AsyncIterator[Dict[str, str]]:
    """Yield messages from queue until the client goes away."""
    while True:
        try:
            event = await asyncio.wait_for(queue.get(), timeout=check_interval)
        except asyncio.TimeoutError:
            if await is_disconnected():
                return
            continue
        yield reload_message(event)


def create_app(bus: ReloadBus) -> Starlette:
    """Starlette app serving the client script and the event stream."""

    async def events(request: Request) -> EventSourceResponse:
        queue, unsubscribe = bus.subscribe()
        logger.debug("browser connected (%d subscriber(s))", bus.subscriber_count)

        async def stream() -> AsyncIterator[Dict[str, str]]:
            try:
                async for message in event_stream(queue, request.is_disconnected):
                    yield message
            finally:
                unsubscribe()

        return EventSourceResponse(
            stream(),
            headers={**CORS_HEADERS, 'X-Accel-Buffering': 'no'},
            ping=15,
        )

    async def client(request: Request) -> Response:
        return Response(CLIENT_JS, media_type='application/javascript', headers=CORS_HEADERS)

    return Starlette(routes=[
        Route(EVENTS_PATH, events),
        Route(CLIENT_PATH, client),
    ])


class ReloadServer:
    """uvicorn server for the reload app.

    Args:
        bus: Reload notifications to forward to browsers
        port: TCP port to listen on
        host: Interface to bind
    """

    def __init__(self, bus: ReloadBus, port: int, host: str = '127.0.0.1'):
        self.host = host
        self.port = port
        self.app = create_app(bus)
        self.server = uvicorn.Server(uvicorn.Config(
            self.app, host=host, port=port, log_level='warning', lifespan='off',
        ))

    @property
    def client_url(self) -> str:
        return f"http://{self.host}:{self.port}{CLIENT_PATH}"

    def bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            raise
        return sock

    async def serve(self) -> None:
        """Serve until stop() or cancellation.

        A port that cannot be bound is logged and the server is skipped;
        reload notifications never fail the watch.
        """
        try:
            sock = self.bind()
        except OSError as e:
            logger.warning("reload server not started on %s:%d: %s", self.host, self.port, e)
            return
        logger.info("live reload: %s", self.client_url)
        try:
            await self.server.serve(sockets=[sock])
        finally:
            sock.close()

    def stop(self) -> None:
        self.server.should_exit = True


def reload_server(bus: ReloadBus, port: Optional[int]) -> Optional[ReloadServer]:
    """ReloadServer for port, or None when port is 0 or unset."""
    if not port:
        return None
    return ReloadServer(bus, port)
