"""Exceptions raised by the prerender core and its collaborators."""
from __future__ import annotations


class PrerenderError(Exception):
    """Base class for all prerender failures."""


class NoPortAvailable(PrerenderError):
    """Raised when every port in the probed range is in use."""

    def __init__(self, start_port: int, end_port: int):
        self.start_port = start_port
        self.end_port = end_port
        super().__init__(f"No available port found in range {start_port}-{end_port}")


class ServerStartTimeout(PrerenderError):
    """Raised when the static server never answers its liveness probe."""

    def __init__(self, port: int, attempts: int, exit_code: int | None = None):
        self.port = port
        self.attempts = attempts
        self.exit_code = exit_code
        if exit_code is not None:
            message = f"Server on port {port} exited with code {exit_code} before becoming ready"
        else:
            message = f"Server on port {port} did not start within {attempts} attempts"
        super().__init__(message)


class NavigationFailure(PrerenderError):
    """Raised when the browser cannot load or serialize a route."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to render {url}: {reason}")


class NavigationTimeout(NavigationFailure):
    """Raised when a route does not reach network idle in time."""

    def __init__(self, url: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(url, f"timed out after {timeout_ms} ms")


class WriteFailure(PrerenderError):
    """Raised when a rendered page cannot be written to disk."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not write {path}: {reason}")


class ConfigError(PrerenderError):
    """Raised when the project configuration cannot be loaded."""

    def __init__(self, message: str, hint: str | None = None):
        self.hint = hint
        super().__init__(message)


class RenderInterrupted(PrerenderError):
    """Raised inside the render flow after an interrupt signal was handled."""

    def __init__(self, signum: int | None = None):
        self.signum = signum
        super().__init__(f"Prerendering interrupted by signal {signum}")
