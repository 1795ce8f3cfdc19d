"""Data preprocessing: normalization, feature selection, matrix extraction."""

from spatialaug.preprocessing.normalize import (
    extract_coordinates,
    extract_groups,
    normalize_expression,
    prepare_data,
    prepare_from_anndata,
    select_features,
)

__all__ = [
    "normalize_expression",
    "select_features",
    "extract_coordinates",
    "extract_groups",
    "prepare_data",
    "prepare_from_anndata",
]
