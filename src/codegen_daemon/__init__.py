"""OpenAPI code-generation daemon with descriptor search."""

from .__version__ import __version__

__all__ = ["__version__"]
