"""Live reload for the pagebuild preview server.

Browsers connect to a websocket server and receive JSON messages:

- ``{"type": "css", "paths": [...]}``: refresh stylesheets in place.
- ``{"type": "reload"}``: reload the whole page.

Key objects:
- LiveReloadServer: Websocket server broadcasting reload messages.
- reload_script: Client script injected into served HTML pages.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

import websockets

_RELOAD_SCRIPT_TEMPLATE = """
<script>
(() => {{
  const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
  ws.onmessage = (event) => {{
    const data = JSON.parse(event.data || '{{}}');
    if (data.type === 'css') {{
      document.querySelectorAll('link[rel="stylesheet"]').forEach((link) => {{
        const url = new URL(link.href);
        url.searchParams.set('_reload', Date.now());
        link.href = url.toString();
      }});
    }} else if (data.type === 'reload') {{
      location.reload();
    }}
  }};
}})();
</script>
"""


def reload_script(ws_port: int) -> str:
    """Return the live reload client script for the given websocket port."""
    return _RELOAD_SCRIPT_TEMPLATE.format(ws_port=ws_port)


def inject_reload_script(html: str, script: str) -> str:
    """Insert ``script`` before ``</body>``, or append it when there is none."""
    if "</body>" in html:
        return html.replace("</body>", f"{script}</body>", 1)
    return html + script


def build_message(paths: Iterable[Path]) -> dict:
    """Build the message for a set of changed files.

    Stylesheet-only changes are injected without navigation; anything else
    reloads the page.
    """
    paths = list(paths)
    if paths and all(p.suffix.lower() == ".css" for p in paths):
        return {"type": "css", "paths": [p.as_posix() for p in paths]}
    return {"type": "reload"}


class LiveReloadServer:
    """Websocket server pushing reload messages to connected browsers.

    Notifications sent with no connected clients are dropped.

    Attributes:
        port: Websocket port.
        host: Interface to bind.
    """

    def __init__(self, port: int, host: str = "0.0.0.0"):
        self.port = port
        self.host = host
        self._server = None
        self._ws_clients: set = set()

    async def start(self) -> None:
        self._server = await websockets.serve(self._ws_handler, self.host, self.port)
        print(f"Live reload listening on ws://localhost:{self.port}")

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    async def notify(self, paths: list[Path]) -> None:
        """Tell browsers that ``paths`` changed."""
        await self._async_broadcast(json.dumps(build_message(paths)))

    async def reload(self) -> None:
        """Tell browsers to reload the page."""
        await self._async_broadcast(json.dumps({"type": "reload"}))

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)
