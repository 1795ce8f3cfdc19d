"""Configuration dataclass for spatialaug."""

from __future__ import annotations

import math
from dataclasses import dataclass

from spatialaug.errors import InvalidLambdaError

FEATURE_MODES = ("all", "variable")
CLUSTER_METHODS = ("leiden", "kmeans")
EMBEDDINGS = ("umap", "pacmap")


def validate_lambda(value: float) -> float:
    """Return *value* as float, raising :class:`InvalidLambdaError` if not in [0, 1]."""
    try:
        lam = float(value)
    except (TypeError, ValueError):
        raise InvalidLambdaError(value) from None
    if not math.isfinite(lam) or lam < 0.0 or lam > 1.0:
        raise InvalidLambdaError(value)
    return lam


@dataclass
class BanksyConfig:
    """Neighborhood augmentation and downstream clustering parameters.

    Attributes
    ----------
    lambda_ : float
        Mixing weight in ``[0, 1]``; 0 keeps only the own-cell block.
    k_geom : int
        Number of spatial neighbors per observation.
    features : str | list[str]
        ``"all"``, ``"variable"`` or an explicit list of feature names.
    n_top_features : int
        Number of highly variable features when ``features="variable"``.
    group : str | None
        Observation column holding group/batch labels.
    split_scale : bool
        Z-scale within each group instead of globally.
    compute_gradient : bool
        Add the azimuthal gradient block.
    harmonic : int
        Harmonic order of the azimuthal gradient.
    stagger : bool
        Report staggered coordinates for grouped data.
    coord_keys : tuple[str, str]
        Observation columns holding spatial coordinates.
    layer : str | None
        AnnData layer with normalized values (``None`` uses ``X``).
    normalize : bool
        Library-size normalize and ``log1p`` the input before augmentation.
    n_pcs : int
        Principal components for downstream clustering.
    resolution : float
        Leiden resolution.
    cluster_method : str
        ``"leiden"`` or ``"kmeans"``.
    n_clusters : int
        Number of clusters for k-means.
    embedding : str | None
        ``"umap"``, ``"pacmap"`` or ``None`` to skip.
    n_jobs : int
        Worker threads for per-group neighbor searches.
    random_state : int
        Random seed.
    """

    lambda_: float = 0.2
    k_geom: int = 15
    features: str | list[str] = "variable"
    n_top_features: int = 2000
    group: str | None = None
    split_scale: bool = True
    compute_gradient: bool = False
    harmonic: int = 1
    stagger: bool = True
    coord_keys: tuple[str, str] = ("x", "y")
    layer: str | None = None
    normalize: bool = True
    n_pcs: int = 20
    resolution: float = 0.8
    cluster_method: str = "leiden"
    n_clusters: int = 8
    embedding: str | None = "umap"
    n_jobs: int = 1
    random_state: int = 42

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check every field, raising on the first invalid value."""
        self.lambda_ = validate_lambda(self.lambda_)
        if int(self.k_geom) < 1:
            raise ValueError(f"k_geom must be a positive integer, got {self.k_geom!r}")
        if isinstance(self.features, str) and self.features not in FEATURE_MODES:
            raise ValueError(
                f"features must be one of {FEATURE_MODES} or a list of names, got {self.features!r}"
            )
        if not isinstance(self.features, str) and len(self.features) == 0:
            raise ValueError("features list is empty")
        if self.harmonic < 1:
            raise ValueError(f"harmonic must be >= 1, got {self.harmonic}")
        if len(self.coord_keys) != 2:
            raise ValueError(f"coord_keys must name two columns, got {self.coord_keys!r}")
        if self.cluster_method not in CLUSTER_METHODS:
            raise ValueError(
                f"cluster_method must be one of {CLUSTER_METHODS}, got {self.cluster_method!r}"
            )
        if self.embedding is not None and self.embedding not in EMBEDDINGS:
            raise ValueError(f"embedding must be one of {EMBEDDINGS} or None")
        if self.n_jobs < 1:
            raise ValueError("n_jobs must be >= 1")
