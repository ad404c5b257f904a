"""Plan-lock enforcement hooks for OpenSpec-driven Claude sessions."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("specgate")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
