"""Typer CLI for route suggestions and service management."""
from __future__ import annotations

import typer

from loop_router.cli import route_cmd

app = typer.Typer(help="Running route suggestions over an external routing engine")
app.add_typer(route_cmd.app, name="route")


@app.callback()
def main() -> None:
    """Configure logging before any command runs."""
    from loop_router.core.config import configure_logging, get_config

    configure_logging(get_config())


@app.command()
def info() -> None:
    """Show the effective configuration."""
    from loop_router.core.config import default_config_path, get_config

    cfg = get_config()
    path = default_config_path()

    typer.echo("=== Loop Router Configuration ===")
    typer.echo(f"Config file: {path} ({'found' if path.exists() else 'not found, using defaults'})")
    typer.echo(f"Router: {cfg.router.base_url} profile={cfg.router.profile} timeout={cfg.router.timeout_s}s")
    typer.echo(f"Router key: {'✓ present' if cfg.router.api_key else '✗ missing (all routes will be mock)'}")
    typer.echo(f"Places: {cfg.places.base_url}")
    typer.echo("")
    typer.echo("=== Candidates ===")
    typer.echo(f"Loop strategy: {cfg.candidates.loop_strategy}")
    typer.echo(f"Distance multipliers: {cfg.candidates.distance_multipliers}")
    mode = "parallel" if cfg.candidates.parallel else f"sequential, {cfg.candidates.stagger_s}s stagger"
    typer.echo(f"Scheduling: {mode}")
    typer.echo(f"Avoid major roads by default: {cfg.defaults.avoid_major_roads}")
    typer.echo(f"Response cache: {'on' if cfg.cache.enabled else 'off'} (ttl {cfg.cache.ttl_s}s, {cfg.cache.max_entries} entries)")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("loop_router.api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
