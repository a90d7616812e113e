"""evos — Evolvable OS. A shell that owns and rewrites its own source tree."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("evos")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
