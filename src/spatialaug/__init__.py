"""spatialaug: neighborhood-augmented feature matrices for spatial omics."""

from spatialaug.api import Banksy
from spatialaug.config import BanksyConfig
from spatialaug.errors import (
    InsufficientNeighborsError,
    InvalidLambdaError,
    MissingCoordinateError,
    ShapeMismatchError,
    SpatialAugError,
)
from spatialaug.features import AugmentedMatrix, aggregate, assemble
from spatialaug.spatial import NeighborGraph, build_graph, stagger_coordinates

__version__ = "0.1.0"
__all__ = [
    "Banksy",
    "BanksyConfig",
    "NeighborGraph",
    "AugmentedMatrix",
    "build_graph",
    "stagger_coordinates",
    "aggregate",
    "assemble",
    "SpatialAugError",
    "InvalidLambdaError",
    "InsufficientNeighborsError",
    "ShapeMismatchError",
    "MissingCoordinateError",
    "__version__",
]
