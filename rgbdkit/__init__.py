"""Tools for RGB-D data: OBJ/PLY I/O, dataset readers, FPFH features, correspondences and helpers."""

__version__ = "0.1.0"

__all__ = [
    "correspondence",
    "dataset",
    "features",
    "obj",
    "parallel",
    "ply",
    "strings",
    "timing",
]