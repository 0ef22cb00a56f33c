"""Hologram - photo library indexing engine."""
