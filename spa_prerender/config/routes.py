"""Route list loading and normalization."""
from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from spa_prerender.errors import ConfigError

SHOW_PREFIX = "/show/"
RESOURCE_PREFIX = "bdr:"


def normalize_route(route: str) -> str:
    """Turn a CSV entry into a route.

    Examples:
        "/about"  -> "/about"
        "bdr:W12" -> "/show/bdr:W12"
        "W12"     -> "/show/bdr:W12"
    """
    if route.startswith("/"):
        return route
    if route.startswith(RESOURCE_PREFIX):
        return SHOW_PREFIX + route
    return f"{SHOW_PREFIX}{RESOURCE_PREFIX}{route}"


def parse_routes(lines: Iterable[str]) -> list[str]:
    """Parse one route per line, ignoring blank lines and '#' comments."""
    routes = []
    for line in lines:
        entry = line.strip()
        if not entry or entry.startswith("#"):
            continue
        routes.append(normalize_route(entry))
    return routes


def load_routes_csv(csv_path: Path) -> list[str]:
    """Load and normalize routes from a one-route-per-line file.

    Raises:
        ConfigError: If the file cannot be read.
    """
    try:
        content = csv_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read routes file {csv_path}: {e.strerror or e}") from e
    return parse_routes(content.splitlines())


def with_query(routes: Iterable[str], key: str, value: str) -> list[str]:
    """Append key=value to each route's query string."""
    return [f"{route}{'&' if '?' in route else '?'}{key}={value}" for route in routes]
