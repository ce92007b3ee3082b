"""bootsource package."""

__all__ = [
    "aliases",
    "classifier",
    "cli",
    "config",
    "constants",
    "convert",
    "download",
    "exceptions",
    "extract",
    "models",
    "resolver",
    "status",
    "tools",
    "utils",
]
