"""Lambda-weighted assembly of the augmented feature matrix."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from spatialaug.config import validate_lambda
from spatialaug.errors import ShapeMismatchError

logger = logging.getLogger(__name__)

BLOCK_ORDER = ("own", "neighbor", "gradient")


@dataclass
class AugmentedMatrix:
    """Own, neighbor and gradient blocks, scaled, weighted and concatenated.

    Attributes
    ----------
    values : pd.DataFrame
        Augmented matrix ``[n_obs, n_columns]``.
    blocks : dict[str, list[str]]
        Column names of each block, in concatenation order.
    weights : dict[str, float]
        Multiplier applied to each z-scaled block.
    lambda_ : float
        Mixing weight the matrix was built with.
    staggered : pd.DataFrame | None
        Staggered plotting coordinates (metadata only).
    """

    values: pd.DataFrame
    blocks: dict[str, list[str]]
    weights: dict[str, float]
    lambda_: float
    staggered: pd.DataFrame | None = field(default=None, repr=False)

    @property
    def shape(self) -> tuple[int, int]:
        return self.values.shape

    @property
    def obs_names(self) -> pd.Index:
        return self.values.index

    def block(self, name: str) -> pd.DataFrame:
        """Columns of one block (``own``, ``neighbor`` or ``gradient``)."""
        if name not in self.blocks:
            raise KeyError(f"Unknown block: {name!r}. Available: {', '.join(self.blocks)}")
        return self.values[self.blocks[name]]

    def to_numpy(self) -> np.ndarray:
        return self.values.to_numpy()

    def to_anndata(self):
        """Wrap the matrix in an :class:`anndata.AnnData` for downstream tools."""
        import anndata as ad

        adata = ad.AnnData(
            X=self.values.to_numpy(dtype=np.float32),
            obs=pd.DataFrame(index=self.values.index.astype(str)),
            var=pd.DataFrame(
                {"block": [b for b, cols in self.blocks.items() for _ in cols]},
                index=self.values.columns.astype(str),
            ),
        )
        adata.uns["augmentation"] = {"lambda": self.lambda_, "weights": dict(self.weights)}
        if self.staggered is not None:
            for col in self.staggered.columns:
                adata.obs[col] = self.staggered[col].to_numpy()
        return adata


def _zscore_array(X: np.ndarray) -> np.ndarray:
    mean = X.mean(axis=0)
    std = X.std(axis=0)
    std = np.maximum(std, 1e-8)
    return (X - mean) / std


def _warn_constant(X: np.ndarray, group: object = None) -> None:
    constant = int((X.std(axis=0) < 1e-8).sum())
    if constant:
        where = "" if group is None else f" in group {group!r}"
        logger.warning("%d zero-variance column(s)%s scaled to 0", constant, where)


def zscore(
    block: pd.DataFrame,
    groups: pd.Series | np.ndarray | None = None,
) -> pd.DataFrame:
    """Z-score each column, within each group when *groups* is given.

    Zero-variance columns map to 0.
    """
    X = block.to_numpy(dtype=np.float64)
    if groups is None:
        _warn_constant(X)
        out = _zscore_array(X)
    else:
        labels = groups
        if isinstance(groups, pd.Series) and block.index.isin(groups.index).all():
            labels = groups.reindex(block.index)
        codes, uniques = pd.factorize(np.asarray(labels), sort=True)
        if len(codes) != X.shape[0]:
            raise ShapeMismatchError(f"{len(codes)} group labels for {X.shape[0]} rows")
        out = np.empty_like(X)
        for code in np.unique(codes):
            mask = codes == code
            _warn_constant(X[mask], uniques[code])
            out[mask] = _zscore_array(X[mask])
    return pd.DataFrame(out, index=block.index, columns=block.columns)


def block_weights(lambda_: float, with_gradient: bool) -> dict[str, float]:
    """Multipliers for each block given the mixing weight."""
    lam = validate_lambda(lambda_)
    weights = {"own": float(np.sqrt(1.0 - lam))}
    if with_gradient:
        weights["neighbor"] = float(np.sqrt(lam / 2.0))
        weights["gradient"] = float(np.sqrt(lam / 2.0))
    else:
        weights["neighbor"] = float(np.sqrt(lam))
    return weights


def assemble(
    own: pd.DataFrame,
    neighbor_mean: pd.DataFrame,
    gradient: pd.DataFrame | None = None,
    lambda_: float = 0.2,
    groups: pd.Series | np.ndarray | None = None,
) -> AugmentedMatrix:
    """Scale, weight and concatenate the feature blocks.

    Parameters
    ----------
    own : pd.DataFrame
        Own feature matrix ``[n_obs, n_features]``.
    neighbor_mean : pd.DataFrame
        Mean neighbor features, same rows as *own*.
    gradient : pd.DataFrame | None
        Azimuthal gradient features.
    lambda_ : float
        Mixing weight in ``[0, 1]``.
    groups : pd.Series | array-like | None
        Group labels; when given, z-scaling is computed within each group.

    Returns
    -------
    AugmentedMatrix

    Raises
    ------
    InvalidLambdaError
        If *lambda_* lies outside ``[0, 1]``.
    ShapeMismatchError
        If the blocks disagree in row count.
    """
    weights = block_weights(lambda_, with_gradient=gradient is not None)

    named = {"own": own, "neighbor": neighbor_mean}
    if gradient is not None:
        named["gradient"] = gradient

    n_rows = own.shape[0]
    for name, block in named.items():
        if block.shape[0] != n_rows:
            raise ShapeMismatchError(
                f"{name} block has {block.shape[0]} rows, expected {n_rows}"
            )

    scaled = []
    blocks: dict[str, list[str]] = {}
    for name in BLOCK_ORDER:
        if name not in named:
            continue
        block = named[name]
        if not block.index.equals(own.index):
            if own.index.isin(block.index).all():
                block = block.reindex(own.index)
            else:
                block = block.set_axis(own.index, axis=0)
        z = zscore(block, groups) * weights[name]
        scaled.append(z)
        blocks[name] = [str(c) for c in z.columns]

    values = pd.concat(scaled, axis=1)
    values.columns = [c for cols in blocks.values() for c in cols]
    if not values.columns.is_unique:
        raise ValueError("augmented matrix has duplicate column names")

    logger.info(
        "Augmented matrix: %d x %d (lambda=%.3g, blocks=%s)",
        values.shape[0],
        values.shape[1],
        float(lambda_),
        ", ".join(blocks),
    )
    return AugmentedMatrix(values=values, blocks=blocks, weights=weights, lambda_=float(lambda_))
