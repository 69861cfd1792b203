"""Imagen Bridge - proxy between a browser frontend and Google's image generation API."""

__version__ = "0.1.0"
