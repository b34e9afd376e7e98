"""Configuration loader and dataclasses for loop router settings."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import yaml


@dataclass
class RouterEngineConfig:
    """External routing engine (GraphHopper-compatible) settings."""
    base_url: str = "https://graphhopper.com/api/1/route"
    profile: str = "foot"
    timeout_s: float = 8.0
    instructions: bool = True
    locale: str = "en"
    api_key: Optional[str] = None


@dataclass
class PlacesConfig:
    """Area lookup (Overpass-compatible) settings."""
    base_url: str = "https://overpass-api.de/api/interpreter"
    nearest_radius_m: float = 2500.0
    named_radius_m: float = 8000.0
    nearest_timeout_s: float = 3.5
    named_timeout_s: float = 10.0
    min_area_m2: float = 25000.0
    min_perimeter_m: float = 600.0
    max_size_bonus_m: float = 300.0


@dataclass
class GeocoderConfig:
    """Forward geocoder used by the CLI only."""
    base_url: str = "https://nominatim.openstreetmap.org/search"
    timeout_s: float = 5.0
    user_agent: str = "loop-router/0.1"


@dataclass
class CandidateConfig:
    """Per-candidate variation settings."""
    distance_multipliers: List[float] = field(default_factory=lambda: [1.0, 0.98, 1.02])
    bearing_step_deg: float = 35.0
    flat_bearings: List[float] = field(default_factory=lambda: [0, 90, 180, 270, 45, 135, 225, 315])
    hills_bearings: List[float] = field(default_factory=lambda: [25, 70, 115, 160, 205, 250, 295, 340])
    flat_intensities: List[float] = field(default_factory=lambda: [1.0, 0.8, 1.25])
    hills_intensities: List[float] = field(default_factory=lambda: [1.0, 0.85, 1.55])
    stagger_s: float = 0.3
    parallel: bool = False
    loop_strategy: str = "round_trip"


@dataclass
class ParkLoopConfig:
    """Park-boundary loop settings."""
    waypoint_count: int = 6
    min_lap_budget_m: float = 600.0
    max_laps: int = 4


@dataclass
class DefaultsConfig:
    """Request defaults for optional fields."""
    avoid_major_roads: bool = False


@dataclass
class CacheConfig:
    """Response cache settings."""
    enabled: bool = True
    ttl_s: float = 600.0
    max_entries: int = 128


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ServiceConfig:
    """Complete service configuration."""
    router: RouterEngineConfig = field(default_factory=RouterEngineConfig)
    places: PlacesConfig = field(default_factory=PlacesConfig)
    geocoder: GeocoderConfig = field(default_factory=GeocoderConfig)
    candidates: CandidateConfig = field(default_factory=CandidateConfig)
    park_loop: ParkLoopConfig = field(default_factory=ParkLoopConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "ServiceConfig":
        """Load configuration from a YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        return cls(
            router=RouterEngineConfig(**data.get('router', {})),
            places=PlacesConfig(**data.get('places', {})),
            geocoder=GeocoderConfig(**data.get('geocoder', {})),
            candidates=CandidateConfig(**data.get('candidates', {})),
            park_loop=ParkLoopConfig(**data.get('park_loop', {})),
            defaults=DefaultsConfig(**data.get('defaults', {})),
            cache=CacheConfig(**data.get('cache', {})),
            logging=LoggingConfig(**data.get('logging', {})),
        )


def _apply_env(cfg: ServiceConfig) -> ServiceConfig:
    """Pick up the Router API key from the environment."""
    key = os.environ.get("GH_KEY") or os.environ.get("VITE_GH_KEY")
    if key:
        cfg.router.api_key = key
    return cfg


# Global config instance - lazily loaded
_config: Optional[ServiceConfig] = None


def default_config_path() -> Path:
    env_path = os.environ.get("LOOP_ROUTER_CONFIG")
    if env_path:
        return Path(env_path)
    # configs/routing_defaults.yaml relative to project root
    return Path(__file__).resolve().parents[3] / "configs" / "routing_defaults.yaml"


def get_config(config_path: Optional[Path] = None) -> ServiceConfig:
    """Get the global configuration, loading from file if not already loaded.

    Args:
        config_path: Path to the config file. If None, uses ``LOOP_ROUTER_CONFIG``
            or the bundled defaults file.

    Returns:
        The ServiceConfig instance.
    """
    global _config

    if _config is None or config_path is not None:
        if config_path is None:
            config_path = default_config_path()

        if config_path.exists():
            _config = ServiceConfig.from_yaml(config_path)
        else:
            # Use defaults if config file not found
            _config = ServiceConfig()
        _apply_env(_config)

    return _config


def reload_config(config_path: Optional[Path] = None) -> ServiceConfig:
    """Force reload of configuration from file."""
    global _config
    _config = None
    return get_config(config_path)


def configure_logging(cfg: ServiceConfig) -> None:
    """Apply the configured root log level and format."""
    logging.basicConfig(
        level=getattr(logging, cfg.logging.level.upper(), logging.INFO),
        format=cfg.logging.format,
    )
