"""Feature layer: neighborhood aggregation and lambda-weighted assembly."""

from spatialaug.features.aggregate import aggregate, azimuthal_gradient, neighbor_mean
from spatialaug.features.assemble import AugmentedMatrix, assemble, block_weights, zscore

__all__ = [
    "aggregate",
    "neighbor_mean",
    "azimuthal_gradient",
    "AugmentedMatrix",
    "assemble",
    "block_weights",
    "zscore",
]
