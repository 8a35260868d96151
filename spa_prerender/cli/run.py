"""CLI commands."""
from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from spa_prerender import __version__
from spa_prerender.config.loader import load_config
from spa_prerender.config.routes import load_routes_csv, with_query
from spa_prerender.config.settings import settings
from spa_prerender.errors import ConfigError, PrerenderError
from spa_prerender.observability.logging import configure_logging
from spa_prerender.renderer.assets import clean_output, copy_build_assets
from spa_prerender.renderer.runner import prerender

app = typer.Typer(
    add_completion=False,
    help="SPA Prerender - Render client-side routes to static HTML",
)
console = Console()


@app.command()
def run(
    config_file: Path = typer.Option(
        Path(settings.config_file),
        "--config",
        "-c",
        help="Python config file exporting CONFIG or get_config()",
    ),
    routes_csv: Path | None = typer.Option(
        None,
        "--routes-csv",
        help="Load routes from a file, one per line ('bdr:' ids become /show/ routes)",
    ),
    serve_dir: str | None = typer.Option(None, "--serve-dir", help="Override the build directory to serve"),
    out_dir: str | None = typer.Option(None, "--out-dir", help="Override the output directory"),
    flat: bool | None = typer.Option(None, "--flat/--nested", help="about.html instead of about/index.html"),
    skip_existing: bool = typer.Option(False, "--skip-existing", help="Resume: skip routes already rendered"),
    no_clean: bool = typer.Option(False, "--no-clean", help="Keep the existing output directory"),
    no_assets: bool = typer.Option(False, "--no-assets", help="Do not copy build assets to the output"),
    with_build: bool = typer.Option(False, "--with-build", help="Run the build command first"),
    ui_lang: str | None = typer.Option(None, "--ui-lang", help="Append ?uilang=<lang> to every route"),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging and static server output"),
) -> None:
    """Prerender the configured routes.

    Examples:
        spa-prerender run
        spa-prerender run --routes-csv routes.csv
        spa-prerender run --routes-csv routes.csv --ui-lang bo --no-clean --no-assets
    """
    if debug:
        os.environ["PRERENDER_DEBUG"] = "1"
        settings.debug = True
    configure_logging(level=logging.DEBUG if settings.debug else logging.WARNING)

    try:
        config = load_config(config_file)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        if e.hint:
            console.print(e.hint, markup=False)
        raise typer.Exit(1)

    if serve_dir:
        console.print(f"[dim]Overriding serve_dir: {config.serve_dir} -> {serve_dir}[/dim]")
        config.serve_dir = serve_dir
    if out_dir:
        config.out_dir = out_dir
    if flat is not None:
        config.flat_output = flat
    if skip_existing:
        config.skip_existing = True

    try:
        if routes_csv:
            config.routes = load_routes_csv(routes_csv)
            console.print(f"[green]Loaded {len(config.routes)} routes[/green] from {routes_csv}")
        if ui_lang:
            config.routes = with_query(config.routes, "uilang", ui_lang)

        request = config.to_request()

        if with_build:
            _run_build(config.build_command)
        elif not (request.serve_dir / "index.html").is_file():
            console.print(
                f"[red]Error:[/red] Build folder not found. Use --serve-dir or check why there is "
                f"no {request.serve_dir / 'index.html'}"
            )
            raise typer.Exit(1)

        if no_clean:
            console.print(f"[yellow]Skipping clean of output directory:[/yellow] {config.out_dir}")
        elif clean_output(request.out_dir):
            console.print(f"[dim]Cleaned existing output directory: {config.out_dir}[/dim]")

        console.print(Panel.fit(
            f"[bold cyan]SPA Prerender[/bold cyan]\n"
            f"[dim]Routes:[/dim] {len(request.routes)}  [dim]Serving:[/dim] {request.serve_dir}",
            border_style="cyan",
        ))
        prerender(request)

        if no_assets:
            console.print("[yellow]Skipping copy of build assets[/yellow]")
        elif copy_build_assets(request.serve_dir, request.out_dir):
            console.print(f"[green]Copied assets[/green] from {config.serve_dir} to {config.out_dir}")

        console.print("[bold green]Prerendering completed successfully![/bold green]")

    except typer.Exit:
        raise
    except PrerenderError as e:
        console.print(f"\n[red]Prerendering failed:[/red] {e}")
        raise typer.Exit(1)
    except (ValueError, RuntimeError) as e:
        console.print(f"\n[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"\n[red]Unexpected error:[/red] {e}")
        if settings.debug:
            import traceback
            console.print(traceback.format_exc())
        raise typer.Exit(1)


def _run_build(command: str) -> None:
    console.print(f"[bold blue]Running {command}...[/bold blue]")
    result = subprocess.run(command, shell=True, check=False)
    if result.returncode != 0:
        console.print(f"[red]Build failed[/red] with exit code {result.returncode}")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]SPA Prerender[/bold] v{__version__}")
    console.print("[dim]Static HTML from client-rendered routes[/dim]")


if __name__ == "__main__":
    app()
