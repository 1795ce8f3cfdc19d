"""Spatial k-NN graph construction, optionally restricted to groups."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from scipy import sparse
from sklearn.neighbors import NearestNeighbors

from spatialaug.errors import InsufficientNeighborsError, ShapeMismatchError

logger = logging.getLogger(__name__)

# Distances equal up to this many decimals count as ties.
_TIE_DECIMALS = 9


@dataclass(frozen=True)
class NeighborGraph:
    """k nearest spatial neighbors of every observation.

    Attributes
    ----------
    obs_names : pd.Index
        Observation identifiers, in matrix row order.
    indices : np.ndarray
        Positional neighbor indices ``[n_obs, k]``, nearest first.
    distances : np.ndarray
        Euclidean distances matching *indices*.
    groups : pd.Series | None
        Group label per observation when the search was group-restricted.
    coords : np.ndarray | None
        Coordinates the search ran on, used for neighbor bearings.
    """

    obs_names: pd.Index
    indices: np.ndarray
    distances: np.ndarray
    groups: pd.Series | None = None
    coords: np.ndarray | None = None

    @property
    def k(self) -> int:
        return int(self.indices.shape[1])

    @property
    def n_obs(self) -> int:
        return int(self.indices.shape[0])

    def neighbors_of(self, obs: Any) -> list:
        """Neighbor identifiers of a single observation, nearest first."""
        pos = self.obs_names.get_loc(obs)
        return self.obs_names[self.indices[pos]].tolist()

    def to_dict(self) -> dict[Any, list]:
        """Mapping ``{obs: [neighbor obs, ...]}``."""
        names = self.obs_names
        return {names[i]: names[row].tolist() for i, row in enumerate(self.indices)}

    def to_edge_index(self) -> np.ndarray:
        """Edge list ``[2, n_obs * k]`` of (observation, neighbor) positions."""
        row = np.repeat(np.arange(self.n_obs), self.k)
        return np.vstack([row, self.indices.ravel()])

    def to_sparse(self, normalize: bool = True) -> sparse.csr_matrix:
        """Adjacency matrix; rows sum to one when *normalize* is set."""
        row, col = self.to_edge_index()
        weight = 1.0 / self.k if normalize else 1.0
        data = np.full(row.shape[0], weight)
        return sparse.csr_matrix((data, (row, col)), shape=(self.n_obs, self.n_obs))


def coordinates_to_array(
    coordinates: pd.DataFrame | np.ndarray,
    obs_names: Any = None,
) -> tuple[np.ndarray, pd.Index]:
    """Return ``(coords, obs_names)`` as a float array and an index."""
    if isinstance(coordinates, pd.DataFrame):
        coords = coordinates.to_numpy(dtype=np.float64)
        names = pd.Index(coordinates.index) if obs_names is None else pd.Index(obs_names)
    else:
        coords = np.asarray(coordinates, dtype=np.float64)
        names = pd.RangeIndex(coords.shape[0]) if obs_names is None else pd.Index(obs_names)

    if coords.ndim != 2 or coords.shape[1] < 1:
        raise ValueError(f"coordinates must have shape [n_obs, n_dims], got {coords.shape}")
    if len(names) != coords.shape[0]:
        raise ShapeMismatchError(
            f"{len(names)} observation names for {coords.shape[0]} coordinate rows"
        )
    if not names.is_unique:
        raise ValueError("observation identifiers must be unique")
    if not np.isfinite(coords).all():
        raise ValueError("coordinates contain NaN/inf values")
    return coords, names


def _as_labels(groups: pd.Series | np.ndarray | list, names: pd.Index) -> pd.Series:
    if len(groups) != len(names):
        raise ShapeMismatchError(f"{len(groups)} group labels for {len(names)} observations")
    if isinstance(groups, pd.Series) and names.isin(groups.index).all():
        labels = groups.reindex(names)
    else:
        # Positional alignment.
        labels = pd.Series(np.asarray(groups), index=names)
    if labels.isna().any():
        raise ValueError("group labels contain missing values")
    return labels


def _identifier_rank(names: pd.Index) -> np.ndarray:
    order = names.argsort(kind="stable")
    rank = np.empty(len(names), dtype=np.intp)
    rank[order] = np.arange(len(names))
    return rank


def _knn_within(coords: np.ndarray, k: int, rank: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """k-NN inside one partition, ties ordered by *rank*.

    Returns local positions and distances ``[m, k]``, self excluded.
    """
    m = coords.shape[0]
    nn = NearestNeighbors(algorithm="kd_tree").fit(coords)

    n_query = min(m, k + 1 + 4)
    while True:
        dist, ind = nn.kneighbors(coords, n_neighbors=n_query)
        rounded = np.round(dist, _TIE_DECIMALS)
        # Widen the query until no tie straddles the k-th neighbor.
        if n_query == m or (rounded[:, -1] > rounded[:, k]).all():
            break
        n_query = min(m, 2 * n_query)

    self_pos = np.arange(m)[:, None]
    is_self = ind == self_pos
    keys_dist = np.where(is_self, -1.0, rounded)
    order = np.lexsort((rank[ind], keys_dist), axis=-1)
    ind = np.take_along_axis(ind, order, axis=1)[:, 1 : k + 1]
    dist = np.take_along_axis(dist, order, axis=1)[:, 1 : k + 1]
    return ind, dist


def build_graph(
    coordinates: pd.DataFrame | np.ndarray,
    k: int = 15,
    groups: pd.Series | np.ndarray | list | None = None,
    obs_names: Any = None,
    n_jobs: int = 1,
) -> NeighborGraph:
    """Build a k-NN spatial graph.

    Parameters
    ----------
    coordinates : pd.DataFrame | np.ndarray
        Spatial coordinates ``[n_obs, n_dims]``. A DataFrame index supplies
        the observation identifiers.
    k : int
        Number of neighbors (excluding self).
    groups : pd.Series | array-like | None
        Group label per observation. Neighbors are never chosen across
        groups.
    obs_names : array-like | None
        Observation identifiers, overriding the DataFrame index.
    n_jobs : int
        Worker threads for the per-group searches.

    Returns
    -------
    NeighborGraph

    Raises
    ------
    InsufficientNeighborsError
        If a group holds fewer than ``k + 1`` observations.
    """
    coords, names = coordinates_to_array(coordinates, obs_names)
    k = int(k)
    if k < 1:
        raise ValueError(f"k must be a positive integer, got {k}")

    n = coords.shape[0]
    labels = None
    if groups is None:
        partitions: list[tuple[Any, np.ndarray]] = [(None, np.arange(n))]
    else:
        labels = _as_labels(groups, names)
        codes, uniques = pd.factorize(labels, sort=True)
        partitions = [(g, np.flatnonzero(codes == i)) for i, g in enumerate(uniques)]

    for g, idx in partitions:
        if idx.size < k + 1:
            raise InsufficientNeighborsError(g, int(idx.size), k)

    rank = _identifier_rank(names)

    def _search(part: tuple[Any, np.ndarray]) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        _, idx = part
        local_ind, local_dist = _knn_within(coords[idx], k, rank[idx])
        return idx, idx[local_ind], local_dist

    if n_jobs > 1 and len(partitions) > 1:
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            results = list(pool.map(_search, partitions))
    else:
        results = [_search(p) for p in partitions]

    indices = np.empty((n, k), dtype=np.intp)
    distances = np.empty((n, k), dtype=np.float64)
    for idx, nbr, dist in results:
        indices[idx] = nbr
        distances[idx] = dist

    logger.info("Spatial graph: %d observations, %d group(s), k=%d", n, len(partitions), k)
    return NeighborGraph(
        obs_names=names, indices=indices, distances=distances, groups=labels, coords=coords
    )
