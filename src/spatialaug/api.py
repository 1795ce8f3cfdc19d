"""High-level spatialaug API."""

from __future__ import annotations

import logging
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from spatialaug._utils import set_seed
from spatialaug.config import BanksyConfig
from spatialaug.features.aggregate import aggregate
from spatialaug.features.assemble import AugmentedMatrix, assemble
from spatialaug.preprocessing.normalize import prepare_data, prepare_from_anndata
from spatialaug.spatial.graph import NeighborGraph, build_graph
from spatialaug.spatial.stagger import stagger_coordinates

logger = logging.getLogger(__name__)


class Banksy:
    """Neighborhood-augmented clustering for spatial omics.

    Each observation's own features are blended with the mean features of
    its spatial neighbors (and optionally an azimuthal gradient) under the
    mixing weight ``lambda_``. The augmented matrix then goes through
    ordinary PCA, clustering and embedding.

    Parameters
    ----------
    config : BanksyConfig | None
        Full configuration. Individual keyword arguments override fields
        of the default config.
    **kwargs
        Passed to :class:`BanksyConfig`.

    Examples
    --------
    >>> from spatialaug import Banksy
    >>> b = Banksy(lambda_=0.2, k_geom=15, group="sample")
    >>> aug = b.fit_transform("data.h5ad")
    >>> clusters = b.embed_and_cluster()
    """

    def __init__(self, config: BanksyConfig | None = None, **kwargs: Any):
        cfg = replace(config) if config is not None else BanksyConfig()

        # Override defaults with kwargs
        for key, value in kwargs.items():
            if hasattr(cfg, key):
                setattr(cfg, key, value)
            else:
                raise TypeError(f"Unknown parameter: {key!r}")
        cfg.validate()

        self.config = cfg

        # Populated after fit_transform
        self.features_: pd.DataFrame | None = None
        self.coords_: pd.DataFrame | None = None
        self.groups_: pd.Series | None = None
        self.graph_: NeighborGraph | None = None
        self.augmented_: AugmentedMatrix | None = None
        self.staggered_: pd.DataFrame | None = None

        # Populated after embed_and_cluster
        self.pca_: np.ndarray | None = None
        self.embedding_: np.ndarray | None = None
        self.clusters_: pd.DataFrame | None = None

    @property
    def params_(self) -> dict[str, Any]:
        return asdict(self.config)

    # ------------------------------------------------------------------
    # Core pipeline
    # ------------------------------------------------------------------

    def fit_transform(
        self,
        input: str | Path | np.ndarray | pd.DataFrame | Any,  # noqa: A002
        coords: np.ndarray | pd.DataFrame | str | Path | None = None,
        groups: pd.Series | np.ndarray | None = None,
        feature_names: list[str] | None = None,
        verbose: bool = True,
    ) -> AugmentedMatrix:
        """Build the neighborhood-augmented matrix.

        Parameters
        ----------
        input : str | Path | np.ndarray | pd.DataFrame | AnnData
            - Path to ``.h5ad`` or expression ``.csv``.
            - Expression matrix ``[n_obs, n_features]`` (requires *coords*).
            - An ``AnnData`` object with coordinates in ``obs`` or ``obsm``.
        coords : np.ndarray | pd.DataFrame | str | Path | None
            Spatial coordinates, or a coordinates CSV for CSV input.
        groups : pd.Series | np.ndarray | None
            Group labels for array input (AnnData and CSV input use
            ``config.group``).
        feature_names : list[str] | None
            Feature names for array input.
        verbose : bool
            Log progress.

        Returns
        -------
        AugmentedMatrix
        """
        cfg = self.config
        set_seed(cfg.random_state)

        data = self._prepare_input(input, coords, groups, feature_names)
        features, xy, labels = data["features"], data["coords"], data["groups"]

        if verbose:
            logger.info(
                "Data: %d observations, %d features, %s",
                data["n_obs"],
                data["n_features"],
                "no groups" if labels is None else f"{labels.nunique()} groups",
            )

        graph = build_graph(xy, k=cfg.k_geom, groups=labels, n_jobs=cfg.n_jobs)
        neighbor, gradient = aggregate(
            features,
            graph,
            compute_gradient=cfg.compute_gradient,
            harmonic=cfg.harmonic,
        )

        scale_groups = labels if (labels is not None and cfg.split_scale) else None
        augmented = assemble(
            features,
            neighbor,
            gradient,
            lambda_=cfg.lambda_,
            groups=scale_groups,
        )

        staggered = None
        if labels is not None and cfg.stagger:
            staggered = stagger_coordinates(xy, labels)
            augmented.staggered = staggered

        self.features_ = features
        self.coords_ = xy
        self.groups_ = labels
        self.graph_ = graph
        self.augmented_ = augmented
        self.staggered_ = staggered
        self.pca_ = self.embedding_ = self.clusters_ = None
        return augmented

    # ------------------------------------------------------------------
    # Downstream helpers
    # ------------------------------------------------------------------

    def embed_and_cluster(self, n_pcs: int | None = None) -> pd.DataFrame:
        """Run PCA, clustering and a 2D embedding on the augmented matrix.

        Must be called after :meth:`fit_transform`.

        Returns
        -------
        pd.DataFrame
            Column ``cluster`` plus ``<embedding>_1``/``<embedding>_2`` when
            an embedding is configured, indexed by observation.
        """
        self._check_fitted()
        from sklearn.decomposition import PCA

        cfg = self.config
        X = self.augmented_.to_numpy()
        n_comps = min(n_pcs or cfg.n_pcs, X.shape[0] - 1, X.shape[1])
        pca = PCA(n_components=n_comps, random_state=cfg.random_state)
        X_pca = pca.fit_transform(X)
        self.pca_ = X_pca
        logger.info(
            "PCA: %d components, %.1f%% variance explained",
            n_comps,
            100.0 * pca.explained_variance_ratio_.sum(),
        )

        adata = None
        if cfg.cluster_method == "leiden":
            try:
                import igraph  # noqa: F401
                import leidenalg  # noqa: F401
            except ImportError:
                raise ImportError(
                    "Leiden clustering requires igraph and leidenalg. "
                    "Install with: pip install spatialaug[leiden] "
                    "(or use cluster_method=\"kmeans\")"
                ) from None
            import scanpy as sc

            adata = self._neighbors_adata(X_pca)
            sc.tl.leiden(
                adata,
                resolution=cfg.resolution,
                random_state=cfg.random_state,
                key_added="cluster",
                flavor="igraph",
                n_iterations=2,
                directed=False,
            )
            labels = adata.obs["cluster"].astype(str).to_numpy()
        else:
            from sklearn.cluster import KMeans

            km = KMeans(n_clusters=cfg.n_clusters, n_init=10, random_state=cfg.random_state)
            labels = km.fit_predict(X_pca).astype(str)

        out = pd.DataFrame({"cluster": pd.Categorical(labels)}, index=self.augmented_.obs_names)
        logger.info("Clustering (%s): %d clusters", cfg.cluster_method, out["cluster"].nunique())

        if cfg.embedding == "umap":
            import scanpy as sc

            if adata is None:
                adata = self._neighbors_adata(X_pca)
            sc.tl.umap(adata, random_state=cfg.random_state)
            self.embedding_ = np.asarray(adata.obsm["X_umap"])
        elif cfg.embedding == "pacmap":
            try:
                import pacmap
            except ImportError:
                raise ImportError(
                    "PaCMAP embedding requires pacmap. Install with: pip install spatialaug[pacmap]"
                ) from None

            reducer = pacmap.PaCMAP(n_components=2, random_state=cfg.random_state)
            self.embedding_ = reducer.fit_transform(X_pca, init="pca")

        if self.embedding_ is not None:
            out[f"{cfg.embedding}_1"] = self.embedding_[:, 0]
            out[f"{cfg.embedding}_2"] = self.embedding_[:, 1]

        self.clusters_ = out
        return out

    def run_lambdas(
        self,
        input: str | Path | np.ndarray | pd.DataFrame | Any,  # noqa: A002
        lambdas: list[float],
        coords: np.ndarray | pd.DataFrame | str | Path | None = None,
        groups: pd.Series | np.ndarray | None = None,
    ) -> pd.DataFrame:
        """Cluster at several mixing weights.

        Small weights (about 0.2) favour cell typing, large ones (about
        0.8) favour tissue domains, 0 is the non-spatial baseline.

        Returns
        -------
        pd.DataFrame
            One ``cluster_lambda<value>`` column per weight.
        """
        original = self.config
        columns = {}
        try:
            for lam in lambdas:
                self.config = replace(original, lambda_=lam)
                self.fit_transform(input, coords=coords, groups=groups, verbose=False)
                columns[f"cluster_lambda{lam:g}"] = self.embed_and_cluster()["cluster"]
        finally:
            self.config = original
        return pd.DataFrame(columns)

    def to_anndata(self) -> Any:
        """AnnData holding the augmented matrix and every derived annotation."""
        self._check_fitted()
        adata = self.augmented_.to_anndata()
        adata.obsm["spatial"] = self.coords_.to_numpy()
        if self.groups_ is not None:
            adata.obs["group"] = pd.Categorical(self.groups_.to_numpy())
        if self.pca_ is not None:
            adata.obsm["X_pca"] = self.pca_
        if self.clusters_ is not None:
            adata.obs["cluster"] = self.clusters_["cluster"].to_numpy()
        if self.embedding_ is not None:
            adata.obsm[f"X_{self.config.embedding}"] = self.embedding_
        adata.uns["spatialaug"] = {
            k: (list(v) if isinstance(v, tuple) else v)
            for k, v in self.params_.items()
            if v is not None
        }
        return adata

    def plot_results(self, save_path: str | None = None, **kwargs: Any) -> None:
        """Spatial cluster map and embedding figure.

        Must be called after :meth:`embed_and_cluster`.
        """
        self._check_fitted()
        if self.clusters_ is None:
            raise RuntimeError("Call embed_and_cluster() first.")
        from spatialaug.visualization.plots import plot_banksy_results

        coords = self.staggered_ if self.staggered_ is not None else self.coords_
        plot_banksy_results(
            coords,
            self.clusters_,
            save_path=save_path,
            title=f"lambda = {self.config.lambda_:g}",
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _neighbors_adata(self, X_pca: np.ndarray) -> Any:
        import anndata as ad
        import scanpy as sc

        adata = ad.AnnData(X=X_pca.astype(np.float32))
        adata.obsm["X_pca"] = X_pca
        sc.pp.neighbors(
            adata,
            n_neighbors=min(15, X_pca.shape[0] - 1),
            use_rep="X_pca",
            random_state=self.config.random_state,
        )
        return adata

    def _prepare_input(
        self,
        input: str | Path | np.ndarray | pd.DataFrame | Any,  # noqa: A002
        coords: np.ndarray | pd.DataFrame | str | Path | None,
        groups: pd.Series | np.ndarray | None,
        feature_names: list[str] | None,
    ) -> dict[str, Any]:
        cfg = self.config

        # AnnData object
        if hasattr(input, "obsm"):
            return prepare_from_anndata(input, cfg)

        # File path
        if isinstance(input, (str, Path)):
            from spatialaug.io.loaders import auto_load

            if str(input).endswith(".h5ad"):
                return prepare_from_anndata(auto_load(input), cfg)

            if coords is None:
                raise ValueError("coords is required for CSV input")
            if isinstance(coords, (str, Path)):
                features, xy, labels = auto_load(
                    input, coords, coord_keys=cfg.coord_keys, group_column=cfg.group
                )
            else:
                features = pd.read_csv(str(input), index_col=0).astype(np.float64)
                xy, labels = coords, groups
            return self._prepare_arrays(features, xy, labels, feature_names)

        # Array or DataFrame
        if isinstance(input, (np.ndarray, pd.DataFrame)):
            if coords is None:
                raise ValueError("coords is required when input is an array")
            return self._prepare_arrays(input, coords, groups, feature_names)

        raise TypeError(f"Unsupported input type: {type(input)}")

    def _prepare_arrays(
        self,
        X: np.ndarray | pd.DataFrame,
        coords: np.ndarray | pd.DataFrame,
        groups: pd.Series | np.ndarray | None,
        feature_names: list[str] | None,
    ) -> dict[str, Any]:
        cfg = self.config
        data = prepare_data(
            X,
            coords,
            groups=groups,
            feature_names=feature_names,
            coord_keys=cfg.coord_keys,
            normalize=cfg.normalize,
        )
        # Highly-variable selection needs AnnData; arrays keep every column unless named.
        if not isinstance(cfg.features, str):
            missing = [f for f in cfg.features if f not in data["features"].columns]
            if missing:
                raise KeyError(f"Features not found: {', '.join(missing[:10])}")
            data["features"] = data["features"][list(cfg.features)]
            data["n_features"] = len(cfg.features)
        return data

    def _check_fitted(self) -> None:
        if self.augmented_ is None:
            raise RuntimeError("Call fit_transform() first.")
