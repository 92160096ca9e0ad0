"""COLMAP scene loading, splat initialisation, PLY export, image I/O, metrics and progress display for Gaussian Splatting."""

__version__ = "0.1.0"

__all__ = [
    "camera",
    "cli",
    "colmap",
    "dataset",
    "geometry",
    "image_io",
    "metrics",
    "parameters",
    "point_cloud",
    "progress",
    "splat_data",
]