"""Deterministic mapping from routes to output files."""
from __future__ import annotations

from pathlib import Path

from spa_prerender.renderer.models import PlannedRoute, RenderRequest

INDEX_FILE = "index.html"
EMPTY_ROUTE_NAME = "root"


def output_path(route: str, out_dir: Path, flat_output: bool = False) -> Path:
    """Return the file a rendered route is written to.

    Examples:
        "/"                  -> out/index.html
        "/about?x=1" nested  -> out/about/index.html?x=1
        "/blog/post" flat    -> out/blog-post.html
    """
    if route == "/":
        return out_dir / INDEX_FILE

    if flat_output:
        name = route.removeprefix("/").replace("/", "-") or EMPTY_ROUTE_NAME
        return out_dir / f"{name}.html"

    path, sep, query = route.partition("?")
    route_dir = path.removeprefix("/") or EMPTY_ROUTE_NAME
    file_name = f"{INDEX_FILE}?{query}" if sep else INDEX_FILE
    return out_dir / route_dir / file_name


def plan_routes(request: RenderRequest) -> list[PlannedRoute]:
    """Resolve output paths and predict which routes will be rendered.

    With ``skip_existing`` a route is predicted to render only if its file is
    missing and no earlier route writes the same file.
    """
    planned: list[PlannedRoute] = []
    claimed: set[Path] = set()
    for index, route in enumerate(request.routes):
        path = output_path(route, request.out_dir, request.flat_output)
        if request.skip_existing:
            will_render = path not in claimed and not path.exists()
            claimed.add(path)
        else:
            will_render = True
        planned.append(PlannedRoute(index=index, route=route, path=path, will_render=will_render))
    return planned


def pending_counts(planned: list[PlannedRoute]) -> list[int]:
    """Return, for each position, how many routes from there on will render."""
    counts = [0] * (len(planned) + 1)
    for i in range(len(planned) - 1, -1, -1):
        counts[i] = counts[i + 1] + (1 if planned[i].will_render else 0)
    return counts[:-1]
