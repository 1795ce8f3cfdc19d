"""End-to-end tests for the Banksy API and IO helpers."""

import json

import numpy as np
import pandas as pd
import pytest


def _toy(n_per_group=60, n_features=6, seed=0):
    rng = np.random.default_rng(seed)
    n = 2 * n_per_group
    coords = rng.uniform(0, 50, (n, 2))
    X = rng.poisson(3.0, (n, n_features)).astype(float)
    # left half of each section expresses the first feature strongly
    X[coords[:, 0] < 25, 0] += 10
    groups = np.repeat(["s1", "s2"], n_per_group)
    return X, coords, groups


def test_fit_transform_arrays_with_groups():
    from spatialaug import Banksy

    X, coords, groups = _toy()
    b = Banksy(k_geom=5, normalize=False, lambda_=0.2)
    aug = b.fit_transform(X, coords=coords, groups=groups, verbose=False)

    assert aug.shape == (120, 12)
    assert b.graph_.k == 5
    assert b.groups_.nunique() == 2
    # neighbors never cross section boundaries
    labels = b.groups_.to_numpy()
    assert np.all(labels[b.graph_.indices] == labels[:, None])
    assert b.staggered_ is not None
    assert list(b.staggered_.columns) == ["staggered_x", "staggered_y"]


def test_fit_transform_anndata():
    import anndata as ad

    from spatialaug import Banksy

    X, coords, groups = _toy()
    obs = pd.DataFrame(
        {"x": coords[:, 0], "y": coords[:, 1], "sample": groups},
        index=[f"cell_{i}" for i in range(len(X))],
    )
    adata = ad.AnnData(X=X.astype(np.float32), obs=obs)
    adata.var_names = [f"gene_{i}" for i in range(X.shape[1])]

    b = Banksy(k_geom=5, features="all", group="sample", compute_gradient=True)
    aug = b.fit_transform(adata, verbose=False)

    assert aug.shape == (120, 18)
    assert aug.blocks["gradient"][0] == "gene_0.agf"
    assert aug.obs_names[0] == "cell_0"
    # the input object is not modified
    assert np.allclose(adata.X, X)


def test_anndata_coordinates_from_obsm():
    import anndata as ad

    from spatialaug import Banksy

    X, coords, _ = _toy()
    adata = ad.AnnData(X=X.astype(np.float32))
    adata.obsm["spatial"] = coords

    aug = Banksy(k_geom=4, features="all").fit_transform(adata, verbose=False)
    assert aug.shape == (120, 12)


def test_missing_coordinates():
    import anndata as ad

    from spatialaug import Banksy
    from spatialaug.errors import MissingCoordinateError

    X, _, _ = _toy()
    adata = ad.AnnData(X=X.astype(np.float32))
    with pytest.raises(MissingCoordinateError, match="x, y"):
        Banksy(features="all").fit_transform(adata, verbose=False)


def test_feature_list_on_arrays():
    from spatialaug import Banksy

    X, coords, _ = _toy()
    names = [f"g{i}" for i in range(X.shape[1])]
    b = Banksy(k_geom=5, features=["g0", "g3"], normalize=False)
    aug = b.fit_transform(X, coords=coords, feature_names=names, verbose=False)
    assert aug.blocks["own"] == ["g0", "g3"]

    with pytest.raises(KeyError, match="g9"):
        Banksy(k_geom=5, features=["g9"]).fit_transform(
            X, coords=coords, feature_names=names, verbose=False
        )


def test_group_boundary_error_surfaces():
    from spatialaug import Banksy
    from spatialaug.errors import InsufficientNeighborsError

    X, coords, _ = _toy()
    groups = np.array(["a"] * 117 + ["b"] * 3)
    with pytest.raises(InsufficientNeighborsError):
        Banksy(k_geom=3, normalize=False).fit_transform(
            X, coords=coords, groups=groups, verbose=False
        )


def test_kmeans_clustering_without_embedding():
    from spatialaug import Banksy

    X, coords, groups = _toy()
    b = Banksy(
        k_geom=5,
        normalize=False,
        cluster_method="kmeans",
        n_clusters=3,
        embedding=None,
        n_pcs=5,
    )
    b.fit_transform(X, coords=coords, groups=groups, verbose=False)
    clusters = b.embed_and_cluster()

    assert list(clusters.columns) == ["cluster"]
    assert clusters["cluster"].nunique() == 3
    assert b.pca_.shape == (120, 5)
    assert clusters.index.equals(b.augmented_.obs_names)


def test_run_lambdas_restores_config():
    from spatialaug import Banksy

    X, coords, _ = _toy()
    b = Banksy(k_geom=5, normalize=False, cluster_method="kmeans", n_clusters=2, embedding=None)
    table = b.run_lambdas(X, [0.0, 0.8], coords=coords)

    assert list(table.columns) == ["cluster_lambda0", "cluster_lambda0.8"]
    assert len(table) == 120
    assert b.config.lambda_ == pytest.approx(0.2)


def test_methods_require_fit():
    from spatialaug import Banksy

    b = Banksy()
    with pytest.raises(RuntimeError, match="fit_transform"):
        b.embed_and_cluster()
    with pytest.raises(RuntimeError, match="fit_transform"):
        b.to_anndata()


def test_array_input_requires_coords():
    from spatialaug import Banksy

    X, _, _ = _toy()
    with pytest.raises(ValueError, match="coords is required"):
        Banksy().fit_transform(X)


def test_to_anndata():
    from spatialaug import Banksy

    X, coords, groups = _toy()
    b = Banksy(k_geom=5, normalize=False, cluster_method="kmeans", n_clusters=2, embedding=None)
    b.fit_transform(X, coords=coords, groups=groups, verbose=False)
    b.embed_and_cluster()
    adata = b.to_anndata()

    assert adata.shape == (120, 12)
    assert adata.obsm["spatial"].shape == (120, 2)
    assert "cluster" in adata.obs
    assert "staggered_x" in adata.obs
    assert adata.uns["spatialaug"]["k_geom"] == 5


def test_plot_results(tmp_path):
    import matplotlib

    matplotlib.use("Agg")
    from spatialaug import Banksy

    X, coords, groups = _toy()
    b = Banksy(k_geom=5, normalize=False, cluster_method="kmeans", n_clusters=2, embedding=None)
    b.fit_transform(X, coords=coords, groups=groups, verbose=False)
    with pytest.raises(RuntimeError, match="embed_and_cluster"):
        b.plot_results()

    b.embed_and_cluster()
    out = tmp_path / "clusters.png"
    b.plot_results(save_path=str(out), dpi=50)
    assert out.exists()


def test_csv_round_trip(tmp_path):
    from spatialaug import Banksy
    from spatialaug.io import load_csv, save_parameters

    X, coords, groups = _toy()
    index = [f"cell_{i}" for i in range(len(X))]
    pd.DataFrame(X, index=index, columns=[f"g{i}" for i in range(X.shape[1])]).to_csv(
        tmp_path / "expr.csv"
    )
    pd.DataFrame(
        {"x": coords[:, 0], "y": coords[:, 1], "sample": groups}, index=index
    ).to_csv(tmp_path / "coords.csv")

    features, xy, labels = load_csv(tmp_path / "expr.csv", tmp_path / "coords.csv", group_column="sample")
    assert features.shape == (120, 6)
    assert list(xy.columns) == ["x", "y"]
    assert labels.tolist() == groups.tolist()

    b = Banksy(k_geom=5, group="sample", features="all")
    aug = b.fit_transform(str(tmp_path / "expr.csv"), coords=str(tmp_path / "coords.csv"), verbose=False)
    assert aug.shape == (120, 12)

    save_parameters(b.params_, tmp_path / "params.json")
    params = json.loads((tmp_path / "params.json").read_text())
    assert params["coord_keys"] == ["x", "y"]
    assert params["group"] == "sample"


def test_load_csv_errors(tmp_path):
    from spatialaug.errors import MissingCoordinateError, ShapeMismatchError
    from spatialaug.io import load_csv

    pd.DataFrame(np.ones((4, 2)), index=list("abcd")).to_csv(tmp_path / "expr.csv")
    pd.DataFrame({"x": [0, 1, 2], "y": [0, 1, 2]}, index=list("abc")).to_csv(tmp_path / "short.csv")
    pd.DataFrame({"row": range(4), "col": range(4)}, index=list("abcd")).to_csv(tmp_path / "rc.csv")

    with pytest.raises(ShapeMismatchError, match="4 observations"):
        load_csv(tmp_path / "expr.csv", tmp_path / "short.csv")
    with pytest.raises(MissingCoordinateError, match="Available: row, col"):
        load_csv(tmp_path / "expr.csv", tmp_path / "rc.csv")
    with pytest.raises(KeyError, match="batch"):
        load_csv(tmp_path / "expr.csv", tmp_path / "rc.csv", coord_keys=("row", "col"), group_column="batch")


def test_labelled_inputs_align_by_index():
    from spatialaug import Banksy

    rng = np.random.default_rng(7)
    names = [f"c{i}" for i in range(20)]
    X = pd.DataFrame(rng.poisson(3.0, (20, 4)).astype(float), index=names)
    coords = pd.DataFrame(rng.uniform(0, 10, (20, 2)), index=names, columns=["x", "y"])
    groups = pd.Series(["A"] * 10 + ["B"] * 10, index=names)

    ordered = Banksy(k_geom=3, normalize=False, features="all")
    ordered.fit_transform(X, coords=coords, groups=groups, verbose=False)

    shuffled = Banksy(k_geom=3, normalize=False, features="all")
    shuffled.fit_transform(X, coords=coords.iloc[::-1], groups=groups.iloc[::-1], verbose=False)

    assert np.allclose(shuffled.coords_.loc["c0"], coords.loc["c0"])
    assert shuffled.groups_["c0"] == "A"
    assert shuffled.graph_.to_dict() == ordered.graph_.to_dict()
    assert np.allclose(shuffled.augmented_.to_numpy(), ordered.augmented_.to_numpy())


def test_unlabelled_inputs_align_by_position():
    from spatialaug import Banksy

    X, coords, groups = _toy()
    frame = pd.DataFrame(X, index=[f"cell_{i}" for i in range(len(X))])
    b = Banksy(k_geom=5, normalize=False, features="all")
    b.fit_transform(frame, coords=coords, groups=groups, verbose=False)

    assert np.allclose(b.coords_.to_numpy(), coords)
    assert b.groups_.tolist() == groups.tolist()


def test_leiden_without_igraph_names_the_extra(monkeypatch):
    import sys

    from spatialaug import Banksy

    X, coords, _ = _toy()
    b = Banksy(k_geom=5, normalize=False, cluster_method="leiden", embedding=None)
    b.fit_transform(X, coords=coords, verbose=False)

    monkeypatch.setitem(sys.modules, "igraph", None)
    with pytest.raises(ImportError, match=r"spatialaug\[leiden\]"):
        b.embed_and_cluster()
