"""Neighborhood feature aggregation: mean profile and azimuthal gradient."""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from scipy import sparse

from spatialaug.errors import ShapeMismatchError
from spatialaug.spatial.graph import NeighborGraph

logger = logging.getLogger(__name__)

NEIGHBOR_SUFFIX = ".nbr"
GRADIENT_SUFFIX = ".agf"


def as_feature_frame(features: pd.DataFrame | np.ndarray, graph: NeighborGraph) -> pd.DataFrame:
    """Align a feature matrix with the rows of *graph*.

    A DataFrame whose index holds the graph's observations is reordered to
    graph order; anything else is aligned by position.
    """
    n_rows = features.shape[0]
    if n_rows != graph.n_obs:
        raise ShapeMismatchError(
            f"feature matrix has {n_rows} rows but the graph has {graph.n_obs} observations"
        )
    if isinstance(features, pd.DataFrame):
        if features.index.equals(graph.obs_names):
            return features
        if graph.obs_names.isin(features.index).all():
            return features.reindex(graph.obs_names)
        return features.set_axis(graph.obs_names, axis=0)

    X = np.asarray(features, dtype=np.float64)
    if X.ndim != 2:
        raise ValueError(f"features must be 2D, got shape {X.shape}")
    columns = [f"feature_{i}" for i in range(X.shape[1])]
    return pd.DataFrame(X, index=graph.obs_names, columns=columns)


def neighbor_mean(X: np.ndarray, graph: NeighborGraph) -> np.ndarray:
    """Unweighted mean of each observation's neighbor feature vectors."""
    return np.asarray(graph.to_sparse(normalize=True) @ X)


def azimuthal_gradient(
    X: np.ndarray,
    graph: NeighborGraph,
    harmonic: int = 1,
    mean: np.ndarray | None = None,
) -> np.ndarray:
    """Azimuthal Gabor-type feature of order *harmonic*.

    For observation ``o`` with neighbors ``j`` at bearing ``phi_oj``::

        agf_o = | 1/k * sum_j (x_j - mean_o) * exp(i * m * phi_oj) |

    Larger values mark neighborhoods whose expression changes with
    direction (a local gradient or boundary) rather than uniformly.

    Parameters
    ----------
    X : np.ndarray
        Feature matrix ``[n_obs, n_features]``.
    graph : NeighborGraph
        Spatial graph carrying the coordinates it was built on.
    harmonic : int
        Harmonic order ``m`` (>= 1).
    mean : np.ndarray | None
        Precomputed neighbor mean.

    Returns
    -------
    np.ndarray
        Non-negative gradient magnitudes ``[n_obs, n_features]``.
    """
    if harmonic < 1:
        raise ValueError(f"harmonic must be >= 1, got {harmonic}")
    if graph.coords is None or graph.coords.shape[1] < 2:
        raise ValueError("azimuthal gradient requires a graph built on 2D coordinates")

    if mean is None:
        mean = neighbor_mean(X, graph)

    row, col = graph.to_edge_index()
    delta = graph.coords[col, :2] - graph.coords[row, :2]
    phi = np.arctan2(delta[:, 1], delta[:, 0])
    weights = np.exp(1j * harmonic * phi) / graph.k

    W = sparse.csr_matrix((weights, (row, col)), shape=(graph.n_obs, graph.n_obs))
    weight_sum = np.asarray(W.sum(axis=1))
    return np.abs(np.asarray(W @ X) - mean * weight_sum)


def aggregate(
    features: pd.DataFrame | np.ndarray,
    graph: NeighborGraph,
    compute_gradient: bool = False,
    harmonic: int = 1,
) -> tuple[pd.DataFrame, pd.DataFrame | None]:
    """Compute neighborhood feature blocks.

    Parameters
    ----------
    features : pd.DataFrame | np.ndarray
        Own feature matrix ``[n_obs, n_features]``.
    graph : NeighborGraph
        Spatial neighbor graph over the same observations.
    compute_gradient : bool
        Also compute the azimuthal gradient block.
    harmonic : int
        Harmonic order of the gradient.

    Returns
    -------
    tuple[pd.DataFrame, pd.DataFrame | None]
        ``(neighbor_mean, gradient)``; columns carry the ``.nbr`` and
        ``.agf`` suffixes. *gradient* is ``None`` unless requested.
    """
    frame = as_feature_frame(features, graph)
    X = frame.to_numpy(dtype=np.float64)

    mean = neighbor_mean(X, graph)
    mean_df = pd.DataFrame(
        mean,
        index=frame.index,
        columns=[f"{c}{NEIGHBOR_SUFFIX}" for c in frame.columns],
    )

    gradient_df = None
    if compute_gradient:
        grad = azimuthal_gradient(X, graph, harmonic=harmonic, mean=mean)
        gradient_df = pd.DataFrame(
            grad,
            index=frame.index,
            columns=[f"{c}{GRADIENT_SUFFIX}" for c in frame.columns],
        )

    logger.debug(
        "Aggregated %d features over k=%d neighbors (gradient=%s)",
        X.shape[1],
        graph.k,
        compute_gradient,
    )
    return mean_df, gradient_df
