"""Curated package, bundle and bundle-controller models with bundle and controller reconcilers."""

__version__ = "0.1.0"
__all__ = ["bundle", "bundle_controller", "package", "reconcilers"]