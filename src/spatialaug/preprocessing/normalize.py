"""Expression normalization and extraction of matrices from AnnData."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
import pandas as pd

from spatialaug.errors import MissingCoordinateError, ShapeMismatchError

logger = logging.getLogger(__name__)

SPATIAL_OBSM_KEYS = ("spatial", "X_spatial")


def normalize_expression(
    X: np.ndarray,
    log_transform: bool = True,
    target_sum: float | None = 1e4,
) -> np.ndarray:
    """Library-size normalize and log-transform an expression matrix.

    Parameters
    ----------
    X : np.ndarray
        Expression matrix ``[n_obs, n_features]``.
    log_transform : bool
        Apply ``log1p`` transformation.
    target_sum : float | None
        Per-observation total after normalization; ``None`` skips it.

    Returns
    -------
    np.ndarray
        Normalized expression matrix.
    """
    X = np.asarray(X, dtype=np.float64)
    if (X < 0).any():
        raise ValueError("expression values must be non-negative")

    if target_sum is not None:
        totals = X.sum(axis=1, keepdims=True)
        totals = np.maximum(totals, 1e-8)
        X = X / totals * target_sum

    if log_transform:
        X = np.log1p(X)

    return X


def _dense(X: Any) -> np.ndarray:
    from scipy import sparse

    return X.toarray() if sparse.issparse(X) else np.asarray(X)


def select_features(
    adata: Any,
    features: str | list[str] = "variable",
    n_top_features: int = 2000,
) -> list[str]:
    """Resolve the feature selection to a list of feature names.

    ``"all"`` keeps every feature, ``"variable"`` selects highly variable
    features with scanpy, a list is checked against ``adata.var_names``.
    """
    if isinstance(features, str):
        if features == "all" or n_top_features >= adata.n_vars:
            return adata.var_names.tolist()
        if features == "variable":
            import scanpy as sc

            hvg = sc.pp.highly_variable_genes(adata, n_top_genes=n_top_features, inplace=False)
            selected = adata.var_names[np.asarray(hvg["highly_variable"])].tolist()
            logger.info("Selected %d highly variable features", len(selected))
            return selected
        raise ValueError(f"Unknown feature selection: {features!r}")

    missing = [f for f in features if f not in adata.var_names]
    if missing:
        raise KeyError(f"Features not found: {', '.join(missing[:10])}")
    return list(features)


def extract_coordinates(
    adata: Any,
    coord_keys: tuple[str, str] = ("x", "y"),
) -> pd.DataFrame:
    """Spatial coordinates from obs columns, falling back to ``obsm``.

    Raises
    ------
    MissingCoordinateError
        If neither the obs columns nor ``obsm["spatial"]`` exist.
    """
    keys = list(coord_keys)
    if all(k in adata.obs.columns for k in keys):
        coords = adata.obs[keys].astype(np.float64)
        return pd.DataFrame(coords.to_numpy(), index=adata.obs_names, columns=keys)

    for key in SPATIAL_OBSM_KEYS:
        if key in adata.obsm:
            arr = np.asarray(adata.obsm[key], dtype=np.float64)[:, :2]
            logger.debug("Coordinates read from obsm[%r]", key)
            return pd.DataFrame(arr, index=adata.obs_names, columns=keys)

    missing = [k for k in keys if k not in adata.obs.columns]
    raise MissingCoordinateError(missing, available=list(adata.obs.columns))


def extract_groups(adata: Any, group: str | None) -> pd.Series | None:
    """Group labels from an obs column, or ``None`` when *group* is unset."""
    if group is None:
        return None
    if group not in adata.obs.columns:
        raise KeyError(f"Group column {group!r} not found in obs")
    return adata.obs[group].astype(str).rename(group)


def _align_rows(obj: Any, obs_names: list | None) -> Any:
    """Reorder a labelled DataFrame/Series to *obs_names* when its index covers them."""
    if obs_names is None or not isinstance(obj, (pd.DataFrame, pd.Series)):
        return obj
    names = pd.Index(obs_names)
    if len(obj) == len(names) and names.isin(obj.index).all():
        return obj.reindex(names)
    return obj


def prepare_data(
    X: np.ndarray | pd.DataFrame,
    coords: np.ndarray | pd.DataFrame,
    groups: pd.Series | np.ndarray | None = None,
    feature_names: list[str] | None = None,
    obs_names: list[str] | None = None,
    coord_keys: tuple[str, str] = ("x", "y"),
    normalize: bool = True,
) -> dict[str, Any]:
    """Assemble matrices from plain arrays.

    A coordinate DataFrame or group Series whose index holds every
    observation name is reordered to match the expression rows; anything
    else is aligned by position.

    Returns
    -------
    dict
        Keys: ``features`` (DataFrame), ``coords`` (DataFrame), ``groups``
        (Series or None), ``n_obs``, ``n_features``.
    """
    if isinstance(X, pd.DataFrame):
        obs_names = obs_names or X.index.tolist()
        feature_names = feature_names or [str(c) for c in X.columns]
        X = X.to_numpy(dtype=np.float64)
    X = np.asarray(X, dtype=np.float64)

    if isinstance(coords, pd.DataFrame) and obs_names is None:
        obs_names = coords.index.tolist()
    coords_arr = np.asarray(_align_rows(coords, obs_names), dtype=np.float64)

    if coords_arr.ndim != 2 or coords_arr.shape[1] < 2:
        raise MissingCoordinateError(list(coord_keys))
    if coords_arr.shape[0] != X.shape[0]:
        raise ShapeMismatchError(
            f"expression has {X.shape[0]} observations but coordinates have {coords_arr.shape[0]}"
        )

    obs_names = obs_names or [f"obs_{i}" for i in range(X.shape[0])]
    feature_names = feature_names or [f"feature_{i}" for i in range(X.shape[1])]

    if normalize:
        X = normalize_expression(X)

    features = pd.DataFrame(X, index=pd.Index(obs_names), columns=feature_names)
    coord_df = pd.DataFrame(coords_arr[:, :2], index=features.index, columns=list(coord_keys))

    if groups is not None:
        if len(groups) != X.shape[0]:
            raise ShapeMismatchError("group labels do not match the number of observations")
        groups = _align_rows(groups, obs_names)
        groups = pd.Series(np.asarray(groups).astype(str), index=features.index, name="group")

    return {
        "features": features,
        "coords": coord_df,
        "groups": groups,
        "n_obs": X.shape[0],
        "n_features": X.shape[1],
    }


def prepare_from_anndata(adata: Any, config: Any) -> dict[str, Any]:
    """Prepare matrices from an AnnData object.

    Parameters
    ----------
    adata : anndata.AnnData
        Annotated data with coordinates in ``obs`` or ``obsm``.
    config : BanksyConfig
        Supplies ``layer``, ``normalize``, ``features``, ``n_top_features``,
        ``coord_keys`` and ``group``.

    Returns
    -------
    dict
        Same keys as :func:`prepare_data`.
    """
    coords = extract_coordinates(adata, config.coord_keys)
    groups = extract_groups(adata, config.group)

    adata = adata.copy()
    if config.layer is not None:
        if config.layer not in adata.layers:
            raise KeyError(f"Layer {config.layer!r} not found in adata.layers")
        adata.X = adata.layers[config.layer]
    elif config.normalize:
        import scanpy as sc

        adata.X = adata.X.astype(np.float32)
        sc.pp.normalize_total(adata, target_sum=1e4)
        sc.pp.log1p(adata)

    selected = select_features(adata, config.features, config.n_top_features)
    X = _dense(adata[:, selected].X).astype(np.float64)

    features = pd.DataFrame(X, index=adata.obs_names, columns=selected)
    return {
        "features": features,
        "coords": coords,
        "groups": groups,
        "n_obs": X.shape[0],
        "n_features": X.shape[1],
    }
