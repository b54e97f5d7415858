"""Shuzzle: the model of a three-dimensional block and shadow puzzle."""

__version__ = "0.1.0"

__all__ = ["board", "geometry", "matrix", "mesh", "resources", "scene", "vec"]