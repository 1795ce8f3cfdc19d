"""Data loading utilities for .h5ad and CSV files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from spatialaug.errors import MissingCoordinateError, ShapeMismatchError


def load_anndata(path: str | Path) -> Any:
    """Read an ``.h5ad`` file into an :class:`anndata.AnnData`."""
    import scanpy as sc

    return sc.read_h5ad(str(path))


def load_csv(
    expression_path: str | Path,
    coords_path: str | Path,
    coord_keys: tuple[str, str] = ("x", "y"),
    group_column: str | None = None,
) -> tuple[pd.DataFrame, pd.DataFrame, pd.Series | None]:
    """Load expression, coordinates and optional groups from CSV files.

    The expression CSV holds observations as rows and features as columns
    (with a row index). The coordinates CSV shares the row index and holds
    the *coord_keys* columns, plus *group_column* when given.

    Returns
    -------
    tuple[pd.DataFrame, pd.DataFrame, pd.Series | None]
        ``(features, coords, groups)``
    """
    expr_df = pd.read_csv(str(expression_path), index_col=0)
    coords_df = pd.read_csv(str(coords_path), index_col=0)

    if expr_df.shape[0] != coords_df.shape[0]:
        raise ShapeMismatchError(
            f"Shape mismatch: expression has {expr_df.shape[0]} observations "
            f"but coordinates have {coords_df.shape[0]}"
        )

    missing = [k for k in coord_keys if k not in coords_df.columns]
    if missing:
        raise MissingCoordinateError(missing, available=list(coords_df.columns))

    if expr_df.index.isin(coords_df.index).all():
        coords_df = coords_df.reindex(expr_df.index)
    else:
        coords_df.index = expr_df.index

    groups = None
    if group_column is not None:
        if group_column not in coords_df.columns:
            raise KeyError(f"Group column {group_column!r} not found in {coords_path}")
        groups = coords_df[group_column].astype(str)

    coords = coords_df[list(coord_keys)].astype(np.float64)
    return expr_df.astype(np.float64), coords, groups


def auto_load(
    input_path: str | Path,
    coords_path: str | Path | None = None,
    coord_keys: tuple[str, str] = ("x", "y"),
    group_column: str | None = None,
) -> Any:
    """Auto-detect format and load data.

    Returns an AnnData object for ``.h5ad`` input and the tuple from
    :func:`load_csv` for CSV input.
    """
    input_path = Path(input_path)

    if input_path.suffix == ".h5ad":
        return load_anndata(input_path)

    if input_path.suffix == ".csv":
        if coords_path is None:
            raise ValueError("--coords is required when the input is a CSV file.")
        return load_csv(input_path, coords_path, coord_keys=coord_keys, group_column=group_column)

    raise ValueError(f"Unsupported file format: {input_path.suffix}. Use .h5ad or .csv.")
