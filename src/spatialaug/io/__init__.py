"""Input/output utilities."""

from spatialaug.io.exporters import save_matrix, save_parameters
from spatialaug.io.loaders import auto_load, load_anndata, load_csv

__all__ = [
    "auto_load",
    "load_anndata",
    "load_csv",
    "save_matrix",
    "save_parameters",
]
