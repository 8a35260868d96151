"""Output directory preparation and build asset copying."""
from __future__ import annotations

import shutil
from pathlib import Path

import structlog

logger = structlog.get_logger()


def clean_output(out_dir: Path) -> bool:
    """Remove a previous output tree. Returns True if something was removed."""
    if not out_dir.exists():
        return False
    shutil.rmtree(out_dir)
    logger.info("output_cleaned", out_dir=str(out_dir), component="assets")
    return True


def copy_build_assets(serve_dir: Path, out_dir: Path) -> bool:
    """Copy everything but HTML files from the build into the output tree.

    Rendered pages already occupy the HTML slots. Errors are logged and
    reported through the return value, never raised.
    """
    serve_dir = serve_dir.resolve()
    out_dir = out_dir.resolve()

    def ignore(directory: str, names: list[str]) -> set[str]:
        ignored = {name for name in names if name.endswith(".html")}
        # An output tree nested in the build must not be copied into itself.
        ignored.update(name for name in names if Path(directory, name).resolve() == out_dir)
        return ignored

    try:
        shutil.copytree(serve_dir, out_dir, ignore=ignore, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        logger.error("asset_copy_failed", serve_dir=str(serve_dir), out_dir=str(out_dir), error=str(e))
        return False

    logger.info("assets_copied", serve_dir=str(serve_dir), out_dir=str(out_dir), component="assets")
    return True
