"""Token media pipeline services: metadata in, cached and classified media out."""

__version__ = "0.1.0"
