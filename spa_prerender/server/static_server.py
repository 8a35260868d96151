"""Static file server run as the supervised child process.

Serves a build directory and answers client-side routes with the app shell
(``index.html``) so the browser can render them.

Usage:
    python -m spa_prerender.server.static_server --directory build --port 5050
"""
from __future__ import annotations

import os
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import typer

from spa_prerender.config.settings import is_debug_enabled

APP_SHELL = "/index.html"


class SpaRequestHandler(SimpleHTTPRequestHandler):
    """File handler that falls back to the app shell for unknown paths."""

    quiet = True

    def send_head(self):
        if not self._has_file(self.translate_path(self.path)):
            self.path = APP_SHELL
        return super().send_head()

    @staticmethod
    def _has_file(path: str) -> bool:
        if os.path.isdir(path):
            return os.path.isfile(os.path.join(path, "index.html"))
        return os.path.isfile(path)

    def log_message(self, format, *args):
        if self.quiet:
            return
        super().log_message(format, *args)


def make_server(directory: Path, port: int, host: str = "", quiet: bool = True) -> ThreadingHTTPServer:
    """Create a server bound to host:port serving directory."""
    handler_class = type("SpaRequestHandler", (SpaRequestHandler,), {"quiet": quiet})
    return ThreadingHTTPServer((host, port), partial(handler_class, directory=str(directory)))


def main(
    directory: Path = typer.Option(..., "--directory", "-d", help="Directory to serve"),
    port: int = typer.Option(..., "--port", "-p", help="Port to listen on"),
    host: str = typer.Option("", "--host", help="Interface to bind (default: all)"),
) -> None:
    """Serve DIRECTORY with single-page-application fallback."""
    server = make_server(directory, port, host=host, quiet=not is_debug_enabled())
    try:
        server.serve_forever()
    finally:
        server.server_close()


if __name__ == "__main__":
    typer.run(main)
