"""Development preview server for pagebuild.

Serves the project during development with live reload:
- Files are looked up in an ordered list of roots (intermediate, source,
  public); the first root holding the file wins.
- Virtual routes such as ``/node_modules`` map to fixed directories and
  take priority over the roots.
- A reload script is injected into HTML responses.
- Source and public folders are watched; changes re-run the matching task
  or reload the browser.

Key classes:
- DevServer: Runs the HTTP server, live reload server and watcher.
- _PreviewHandler: HTTP request handler serving from several roots.
"""

from __future__ import annotations

import asyncio
import functools
import posixpath
import threading
import urllib.parse
from collections.abc import Mapping, Sequence
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from .config import EffectiveConfig
from .reload import LiveReloadServer, inject_reload_script, reload_script
from .watch import Watcher, WatchRule

NODE_MODULES_ROUTE = "/node_modules"


class _PreviewHandler(SimpleHTTPRequestHandler):
    """HTTP request handler serving from ordered roots plus virtual routes.

    Attributes:
        roots: Directories searched in order for each request.
        routes: URL prefix to directory mapping, checked before the roots.
        reload_script: Script injected into HTML responses.
    """

    roots: Sequence[Path] = ()
    routes: Mapping[str, Path] = {}
    reload_script = reload_script(2081)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):  # pragma: no cover - keep dev output quiet
        pass

    def translate_path(self, path: str) -> str:
        path = urllib.parse.unquote(path.split("?", 1)[0].split("#", 1)[0])
        path = posixpath.normpath(path)
        parts = [p for p in path.split("/") if p and p not in (".", "..")]
        rel = "/".join(parts)

        for prefix, directory in self.routes.items():
            prefix_parts = prefix.strip("/").split("/")
            if parts[: len(prefix_parts)] == prefix_parts:
                return str(directory.joinpath(*parts[len(prefix_parts) :]))

        for root in self.roots:
            candidate = root / rel
            if candidate.is_file() or (candidate / "index.html").is_file():
                return str(candidate)
        return str(self.roots[0] / rel) if self.roots else rel

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            path_obj = path_obj / "index.html"
        if not path_obj.is_file():
            self.send_error(404, "File not found")
            return None

        if path_obj.suffix == ".html":
            content = path_obj.read_text(encoding="utf-8")
            encoded = inject_reload_script(content, self.reload_script).encode("utf-8")
            self.send_response(200)
            self.send_header("Content-type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(encoded)))
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(encoded)
            return None
        return super().send_head()


def make_handler(
    roots: Sequence[Path],
    routes: Mapping[str, Path],
    ws_port: int,
) -> type[_PreviewHandler]:
    """Create a handler class bound to the given roots and routes."""
    return type(
        "_PreviewHandlerForProject",
        (_PreviewHandler,),
        {
            "roots": list(roots),
            "routes": dict(routes),
            "reload_script": reload_script(ws_port),
        },
    )


class DevServer:
    """Development server with watching and live reload.

    Attributes:
        config: Effective configuration.
        reloader: Live reload server shared with the tasks.
        watcher: Change watcher dispatching to tasks.
        http_port: Port for the HTTP server.
        roots: Directories served, first match wins.
        routes: Virtual routes served before the roots.
    """

    def __init__(
        self,
        config: EffectiveConfig,
        rules: Sequence[WatchRule],
        reloader: LiveReloadServer,
    ):
        self.config = config
        self.reloader = reloader
        self.http_port = config.port
        self.roots = [config.intermediate_dir, config.source_dir, config.public_dir]
        self.routes = {NODE_MODULES_ROUTE: config.root / "node_modules"}
        self.watcher = Watcher(
            rules,
            [config.source_dir, config.public_dir],
            reloader,
        )
        self._httpd: ThreadingHTTPServer | None = None

    async def serve(self) -> None:  # pragma: no cover - integration path
        """Start everything and run until the process is interrupted."""
        await self.reloader.start()
        threading.Thread(target=self._start_http, daemon=True).start()
        self.watcher.start()
        try:
            await asyncio.Future()
        finally:
            self.stop()
            await self.reloader.stop()

    def stop(self) -> None:
        self.watcher.stop()
        if self._httpd is not None:
            self._httpd.shutdown()

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = make_handler(self.roots, self.routes, self.reloader.port)
        handler = functools.partial(handler_cls, directory=str(self.config.root))
        self._httpd = ThreadingHTTPServer(("", self.http_port), handler)
        print(f"Serving {', '.join(str(r) for r in self.roots)} at http://localhost:{self.http_port}")
        self._httpd.serve_forever()
