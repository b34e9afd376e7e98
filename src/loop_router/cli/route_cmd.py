"""Route commands that run the candidate orchestrator without the HTTP layer."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import httpx
import typer

from loop_router.api.dependencies import build_cache
from loop_router.core.config import get_config
from loop_router.core.errors import LoopRouterError
from loop_router.core.geodesy import normalize_geo_order
from loop_router.data.geocoder import geocode
from loop_router.data.graphhopper import GraphHopperClient
from loop_router.data.places import OverpassPlaces
from loop_router.routing.candidates import RouteSuggester
from loop_router.routing.metrics import METERS_PER_MILE
from loop_router.routing.models import RouteOptions

app = typer.Typer(help="Generate route suggestions from the command line")


def _parse_point(text: str):
    parts = text.split(",")
    if len(parts) != 2:
        raise typer.BadParameter("expected lat,lon")
    return normalize_geo_order(parts, "start")


async def _suggest(options_kwargs: dict, address: Optional[str], start: Optional[str]) -> dict:
    cfg = get_config()
    async with httpx.AsyncClient() as http:
        if address:
            origin = await geocode(http, address, cfg.geocoder)
        else:
            origin = _parse_point(start)
        options = RouteOptions(origin=origin, **options_kwargs)
        suggester = RouteSuggester(
            router=GraphHopperClient(http, cfg.router),
            places=OverpassPlaces(http, cfg.places),
            config=cfg,
            cache=build_cache(cfg),
        )
        return await suggester.suggest(options)


@app.command()
def suggest(
    start: Optional[str] = typer.Argument(None, help="start lat,lon (either order)"),
    address: Optional[str] = typer.Option(None, "--address", "-a", help="Geocode this address instead of START"),
    miles: Optional[float] = typer.Option(None, "--miles", help="Target distance in miles"),
    meters: Optional[float] = typer.Option(None, "--meters", help="Target distance in meters"),
    route_type: str = typer.Option("loop", "--type", help="loop or out-and-back"),
    pref: str = typer.Option("flat", "--pref", help="flat or hills"),
    surface: str = typer.Option("mixed", "--surface", help="mixed, trail or road"),
    seed: int = typer.Option(0, "--seed", help="Direction seed"),
    avoid_major_roads: Optional[bool] = typer.Option(None, "--avoid-major-roads/--allow-major-roads"),
    park: bool = typer.Option(False, "--park", help="Loop around a nearby park"),
    park_name: Optional[str] = typer.Option(None, "--park-name", help="Park name to search for"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Path to save GeoJSON"),
) -> None:
    """Print or save three route candidates as a FeatureCollection."""
    if not start and not address:
        raise typer.BadParameter("provide START or --address")
    target = meters if meters is not None else (miles or 3.0) * METERS_PER_MILE
    if target <= 0:
        raise typer.BadParameter("distance must be positive")
    cfg = get_config()
    kwargs = dict(
        target_meters=target,
        route_type="out-and-back" if route_type == "out-and-back" else "loop",
        elevation_pref="hills" if pref == "hills" else "flat",
        surface_pref=surface if surface in ("trail", "road") else "mixed",
        avoid_major_roads=cfg.defaults.avoid_major_roads if avoid_major_roads is None else avoid_major_roads,
        loop_at_park=park or bool(park_name),
        park_search=park_name,
        direction_seed=seed,
    )
    try:
        collection = asyncio.run(_suggest(kwargs, address, start))
    except LoopRouterError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if output:
        output.write_text(json.dumps(collection, indent=2))
        typer.echo(f"Saved {len(collection['features'])} routes to {output}")
    else:
        typer.echo(json.dumps(collection, indent=2))
    for feature in collection["features"]:
        props = feature["properties"]
        m = props["metrics"]
        typer.echo(
            f"  #{props['candidate']}: {m['distanceMiles']} mi, {m['timeMinutes']} min, "
            f"+{m['totalAscent']} m, score {props['scoring']['overallScore']} [{props['source']}]",
            err=True,
        )


@app.command()
def park(
    start: str = typer.Argument(..., help="start lat,lon"),
    name: Optional[str] = typer.Option(None, "--name", help="Park name to search for"),
) -> None:
    """Show which park a park loop would use."""
    cfg = get_config()
    try:
        origin = _parse_point(start)
    except LoopRouterError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    async def _resolve():
        async with httpx.AsyncClient() as http:
            return await OverpassPlaces(http, cfg.places).resolve(origin, name)

    resolution = asyncio.run(_resolve())
    for warning in resolution.warnings:
        typer.echo(f"Warning: {warning}")
    found = resolution.park
    if found is None:
        typer.echo("No suitable park found.")
        raise typer.Exit(1)
    typer.echo(f"Park: {found.name or '(unnamed)'}")
    typer.echo(f"Entry: {found.entry[1]:.6f},{found.entry[0]:.6f} ({found.entry_distance_m:.0f} m away)")
    typer.echo(f"Area: {found.area_m2:.0f} m2, perimeter: {found.perimeter_m:.0f} m")
