"""Project configuration file loading."""
from __future__ import annotations

import importlib.util
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from spa_prerender.errors import ConfigError
from spa_prerender.renderer.models import RenderRequest

CONFIG_HINT = """Create a prerender_config.py file in your project root:

    Static routes:
        CONFIG = {
            "routes": ["/", "/about", "/contact"],
            "out_dir": "static-pages",
            "serve_dir": "build",
            "flat_output": False,  # True for about.html, False for about/index.html
        }

    Dynamic routes:
        def get_config():
            posts = load_posts()
            return {
                "routes": ["/", "/blog", *(f"/blog/{post['slug']}" for post in posts)],
                "out_dir": "static-pages",
                "serve_dir": "build",
            }
"""


class PrerenderConfig(BaseModel):
    """Validated project configuration."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    routes: list[str] = Field(default_factory=list, description="Routes to render, in order")
    out_dir: str = Field(default="static-pages", alias="outDir", description="Output directory")
    serve_dir: str = Field(default="build", alias="serveDir", description="Build directory to serve")
    flat_output: bool = Field(default=False, alias="flatOutput", description="Write about.html instead of about/index.html")
    skip_existing: bool = Field(default=False, alias="skipExisting", description="Resume by skipping rendered routes")
    build_command: str = Field(default="npm run build", alias="buildCommand", description="Command run by --with-build")

    def to_request(self, base_dir: Path | None = None) -> RenderRequest:
        """Resolve directories against base_dir (default: cwd) into a request."""
        base = base_dir or Path.cwd()
        return RenderRequest.build(
            routes=self.routes,
            out_dir=base / self.out_dir,
            serve_dir=base / self.serve_dir,
            flat_output=self.flat_output,
            skip_existing=self.skip_existing,
        )


def load_config(config_path: Path) -> PrerenderConfig:
    """Import a Python config module and validate what it exports.

    The module exports either ``CONFIG`` (a mapping) or ``get_config()``
    (a callable returning one).

    Raises:
        ConfigError: If the file is missing, fails to import, or is invalid.
    """
    if not config_path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}", hint=CONFIG_HINT)

    spec = importlib.util.spec_from_file_location("prerender_config", config_path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot load configuration file: {config_path}", hint=CONFIG_HINT)

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except SyntaxError as e:
        raise ConfigError(f"Syntax error in {config_path}:{e.lineno}: {e.msg}") from e
    except ImportError as e:
        raise ConfigError(
            f"Module resolution error in config file: {e}",
            hint="Make sure every package imported by the config file is installed.",
        ) from e
    except Exception as e:
        raise ConfigError(f"Error loading configuration: {type(e).__name__}: {e}") from e

    raw = _exported_config(module, config_path)
    try:
        return PrerenderConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e


def _exported_config(module: Any, config_path: Path) -> Mapping[str, Any]:
    factory = getattr(module, "get_config", None)
    if callable(factory):
        try:
            raw = factory()
        except Exception as e:
            raise ConfigError(f"get_config() failed: {type(e).__name__}: {e}") from e
    else:
        raw = getattr(module, "CONFIG", None)

    if not isinstance(raw, Mapping):
        raise ConfigError(
            f"{config_path.name} must export a CONFIG mapping or a get_config() function",
            hint=CONFIG_HINT,
        )
    return raw
