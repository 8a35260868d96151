"""Prerender client-rendered routes to static HTML with a headless browser."""

__version__ = "1.0.0"
