"""Running-route suggestions orchestrated over an external routing engine."""

__all__ = [
    "core",
    "data",
    "routing",
    "api",
    "cli",
]
