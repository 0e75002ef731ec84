"""Development server for Scribe.

Serves the built site while you write:
- HTML responses get a small script that reloads the page after a rebuild.
- Directory listings and missing paths answer 404 (with 404.html when present).
- Edits under site/, assets/, data/ or to scribe.yaml trigger a rebuild.

Key classes:
- DevServer: Builds the site, then serves, watches and rebuilds it.
- LiveReload: Websocket endpoint that tells browsers to reload.
- _ReloadHandler: HTTP handler injecting the reload script.
- _ChangeHandler: Watchdog handler forwarding source edits to DevServer.
"""

from __future__ import annotations

import asyncio
import functools
import json
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .assets import ASSETS_DIR
from .build import CONFIG_FILE, DATA_DIR, SITE_DIR, build_site, load_config, staging_dir_for
from .errors import ScribeError

WATCHED_DIRS = (SITE_DIR, ASSETS_DIR, DATA_DIR)

RELOAD_SCRIPT = """
<script>
(() => {{
  const socket = new WebSocket('ws://' + location.hostname + ':{ws_port}');
  socket.onmessage = (event) => {{
    const message = JSON.parse(event.data || '{{}}');
    if (message.type === 'reload') location.reload();
  }};
}})();
</script>
"""


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Static file handler that appends the reload script to HTML pages.

    Attributes:
        reload_script: Snippet inserted before ``</body>``.
    """

    reload_script = RELOAD_SCRIPT.format(ws_port=4001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def _inject(self, markup: str) -> bytes:
        head, sep, tail = markup.rpartition("</body>")
        if sep:
            markup = f"{head}{self.reload_script}{sep}{tail}"
        else:
            markup += self.reload_script
        return markup.encode("utf-8")

    def _send_html(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _serve_404(self):
        not_found = Path(self.directory) / "404.html"
        if not_found.exists():
            self._send_html(404, self._inject(not_found.read_text(encoding="utf-8")))
        else:
            self.send_error(404, "File not found")
        return None

    def send_head(self):
        target = Path(self.translate_path(self.path))
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            return self._serve_404()
        if target.suffix == ".html":
            self._send_html(200, self._inject(target.read_text(encoding="utf-8")))
            return None
        return super().send_head()


class LiveReload:
    """Websocket endpoint that broadcasts reload messages.

    The server runs on its own event loop in a background thread; other
    threads hand it messages through ``notify``.

    Attributes:
        port: Port the websocket server listens on.
        clients: Connected browsers.
        loop: Event loop owned by the websocket thread.
    """

    def __init__(self, port: int):
        self.port = port
        self.clients: set = set()
        self.loop = asyncio.new_event_loop()

    @property
    def script(self) -> str:
        return RELOAD_SCRIPT.format(ws_port=self.port)

    def run(self) -> None:
        """Serve until the loop is stopped. Blocks the calling thread."""
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._serve())
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.port}): {exc}")

    async def _serve(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._register, "0.0.0.0", self.port):
            await asyncio.Future()

    async def _register(self, websocket) -> None:
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    def notify(self, payload: dict[str, Any]) -> None:
        """Send ``payload`` as JSON to every connected browser."""
        asyncio.run_coroutine_threadsafe(self._send_all(json.dumps(payload)), self.loop)

    async def _send_all(self, message: str) -> None:
        gone = set()
        for client in list(self.clients):
            try:
                await client.send(message)
            except Exception:
                gone.add(client)
        self.clients -= gone

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)


class DevServer:
    """Development server that rebuilds on change and reloads browsers.

    Attributes:
        project_root: Root directory of the project.
        config: Build configuration.
        output_dir: Directory the built site is served from.
        http_port: Port for HTTP server.
        ws_port: Port for the live reload websocket.
        live_reload: Websocket broadcaster.
    """

    def __init__(self, project_root: Path, http_port: int | None = None, ws_port: int | None = None):
        """Resolve ports and directories from scribe.yaml and the overrides.

        Args:
            project_root: Root directory of the project.
            http_port: Optional override for the HTTP port.
            ws_port: Optional override for the websocket port. Defaults to
                the HTTP port plus one, unless scribe.yaml sets ``ws_port``
                and no HTTP port override is given.
        """
        self.project_root = project_root
        self.config = load_config(project_root)
        self.output_dir = project_root / self.config["output_dir"]
        self.http_port = int(http_port or self.config["port"])
        if ws_port is None:
            ws_port = self.http_port + 1 if http_port else self.config.get("ws_port", self.http_port + 1)
        self.ws_port = int(ws_port)
        self.live_reload = LiveReload(self.ws_port)
        # Pages link to the local server rather than the configured root_url.
        self.root_url = f"http://localhost:{self.http_port}"
        self._observer: Observer | None = None
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05
        self._post_build_delay = 0.05

    @property
    def ignored_dirs(self) -> tuple[Path, ...]:
        """Build products that must not trigger a rebuild."""
        return (
            self.output_dir,
            staging_dir_for(self.output_dir),
            self.output_dir.with_name(self.output_dir.name + ".old"),
        )

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - integration path
        result = self._build(include_drafts)
        print(f"Built {len(result.pages)} pages")
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._serve_http, daemon=True).start()
        threading.Thread(target=self.live_reload.run, daemon=True).start()
        self._start_watcher(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self.live_reload.stop()

    def _build(self, include_drafts: bool):
        return build_site(self.project_root, include_drafts=include_drafts, root_url=self.root_url)

    def _serve_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_PortReloadHandler", (_ReloadHandler,), {"reload_script": self.live_reload.script}
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        print(f"Serving {self.output_dir} at {self.root_url}")
        httpd.serve_forever()

    def _start_watcher(self, include_drafts: bool) -> None:
        handler = _ChangeHandler(self, include_drafts)
        observer = Observer()
        for folder in WATCHED_DIRS:
            watch_path = self.project_root / folder
            if watch_path.exists():
                observer.schedule(handler, str(watch_path), recursive=True)
        # scribe.yaml lives at the root
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def rebuild(self, include_drafts: bool) -> None:
        """Rebuild after a change and reload connected browsers.

        Changes that leave every watched file's mtime and size untouched are
        ignored. A failed build is reported and the previous output keeps
        being served.
        """
        if self._rebuilding or time.time() - self._last_rebuild_at < self._debounce_seconds:
            return
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return
        self._rebuilding = True
        self._last_signature = signature
        try:
            print("Change detected; rebuilding...")
            try:
                result = self._build(include_drafts)
            except ScribeError as exc:
                print(f"Build failed: {exc}")
                return
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self.live_reload.notify({"type": "reload", "pages": len(result.pages)})
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def _compute_signature(self) -> tuple | None:
        sources = []
        config_path = self.project_root / CONFIG_FILE
        if config_path.exists():
            sources.append(config_path)
        for folder in WATCHED_DIRS:
            root = self.project_root / folder
            if root.exists():
                sources.extend(sorted(p for p in root.rglob("*") if not p.is_dir()))

        entries = []
        for path in sources:
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.project_root).as_posix()
            entries.append((rel, stat.st_mtime_ns, stat.st_size))
        return tuple(entries) or None


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        if any(path.is_relative_to(ignored) for ignored in self.server.ignored_dirs):
            return
        try:
            rel = path.relative_to(self.server.project_root)
        except ValueError:
            rel = path
        # editor swap files, VCS metadata
        if any(part.startswith(".") for part in rel.parts):
            return
        self.server.rebuild(self.include_drafts)
