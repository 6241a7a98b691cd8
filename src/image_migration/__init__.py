"""Migrate locally stored property images to a CDN-backed object store."""

__version__ = "0.1.0"
