"""Centralized configuration settings."""
from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class ServerSettings:
    """Settings for the supervised static file server."""
    host: str = "localhost"
    start_port: int = 5050
    port_range: int = 100  # ports probed from start_port
    probe_attempts: int = 30
    probe_interval: float = 1.0  # seconds between liveness probes
    stop_timeout: float = 3.0  # seconds to wait for the group to exit
    restart_every: int = 1000  # rendered routes between server restarts
    # Optional command template, e.g. "npx serve -s {directory} -l {port}".
    # Empty means the bundled Python static server.
    command: str = ""


@dataclass
class PlaywrightSettings:
    """Settings for the headless browser."""
    headless: bool = True
    navigation_timeout: int = 120000  # ms
    launch_args: list[str] = field(default_factory=lambda: [
        "--no-sandbox",
        "--disable-dev-shm-usage",
    ])


@dataclass
class ShutdownSettings:
    """Settings for interrupt handling and teardown."""
    handler_timeout: float = 5.0  # seconds the signal handler may spend killing
    exit_delay: float = 1.0  # seconds before exiting after an interrupt


@dataclass
class Settings:
    """Main application settings container."""
    server: ServerSettings = field(default_factory=ServerSettings)
    playwright: PlaywrightSettings = field(default_factory=PlaywrightSettings)
    shutdown: ShutdownSettings = field(default_factory=ShutdownSettings)

    debug: bool = False
    config_file: str = "prerender_config.py"

    def __post_init__(self):
        """Load settings from environment variables."""
        self.debug = is_debug_enabled()

        if start_port := os.environ.get("PRERENDER_START_PORT"):
            self.server.start_port = int(start_port)
        if attempts := os.environ.get("PRERENDER_PROBE_ATTEMPTS"):
            self.server.probe_attempts = int(attempts)
        if restart_every := os.environ.get("PRERENDER_RESTART_EVERY"):
            self.server.restart_every = int(restart_every)
        if command := os.environ.get("PRERENDER_SERVER_COMMAND"):
            self.server.command = command

        if nav_timeout := os.environ.get("PRERENDER_NAVIGATION_TIMEOUT"):
            self.playwright.navigation_timeout = int(nav_timeout)


def is_debug_enabled() -> bool:
    """Return True when verbose subprocess output was requested."""
    return os.environ.get("PRERENDER_DEBUG", "").lower() in ("true", "1", "yes")


# Global settings instance
settings = Settings()
