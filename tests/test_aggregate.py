"""Tests for neighborhood feature aggregation."""

import numpy as np
import pandas as pd
import pytest


def _grid(n=10):
    xs, ys = np.meshgrid(np.arange(float(n)), np.arange(float(n)))
    names = [f"s{i:03d}" for i in range(n * n)]
    return pd.DataFrame({"x": xs.ravel(), "y": ys.ravel()}, index=names)


def test_neighbor_mean_matches_manual_average():
    from spatialaug.features.aggregate import aggregate
    from spatialaug.spatial.graph import build_graph

    rng = np.random.default_rng(0)
    coords = rng.uniform(0, 50, (80, 2))
    X = rng.poisson(3, (80, 6)).astype(float)

    graph = build_graph(coords, k=5)
    mean, gradient = aggregate(X, graph)

    expected = X[graph.indices].mean(axis=1)
    assert gradient is None
    assert mean.shape == (80, 6)
    assert np.allclose(mean.to_numpy(), expected)


def test_output_names_follow_features():
    from spatialaug.features.aggregate import aggregate
    from spatialaug.spatial.graph import build_graph

    coords = _grid(6)
    X = pd.DataFrame(
        np.random.default_rng(1).random((36, 2)), index=coords.index, columns=["Actb", "Gfap"]
    )
    mean, gradient = aggregate(X, build_graph(coords, k=4), compute_gradient=True)

    assert list(mean.columns) == ["Actb.nbr", "Gfap.nbr"]
    assert list(gradient.columns) == ["Actb.agf", "Gfap.agf"]
    assert mean.index.equals(coords.index)


def test_gradient_detects_linear_ramp():
    from spatialaug.features.aggregate import aggregate
    from spatialaug.spatial.graph import build_graph

    coords = _grid(10)
    X = np.column_stack([coords["x"].to_numpy(), np.ones(100)])
    graph = build_graph(coords, k=8)

    _, gradient = aggregate(X, graph, compute_gradient=True, harmonic=1)
    interior = (coords["x"].between(1, 8) & coords["y"].between(1, 8)).to_numpy()

    # ramp: sum over the 8 king-move neighbors of dx * cos(phi) = 2 + 2 * sqrt(2)
    expected = (2 + 2 * np.sqrt(2)) / 8
    assert np.allclose(gradient.iloc[interior, 0], expected)
    assert np.allclose(gradient.iloc[:, 1], 0.0, atol=1e-12)


def test_second_harmonic_ignores_linear_ramp():
    from spatialaug.features.aggregate import aggregate
    from spatialaug.spatial.graph import build_graph

    coords = _grid(10)
    X = coords[["x"]].to_numpy()
    _, gradient = aggregate(X, build_graph(coords, k=8), compute_gradient=True, harmonic=2)

    interior = (coords["x"].between(1, 8) & coords["y"].between(1, 8)).to_numpy()
    assert np.allclose(gradient.iloc[interior, 0], 0.0, atol=1e-9)


def test_aggregate_does_not_mutate_input():
    from spatialaug.features.aggregate import aggregate
    from spatialaug.spatial.graph import build_graph

    coords = _grid(5)
    X = pd.DataFrame(np.arange(50.0).reshape(25, 2), index=coords.index)
    before = X.copy()
    aggregate(X, build_graph(coords, k=3), compute_gradient=True)
    pd.testing.assert_frame_equal(X, before)


def test_row_mismatch_raises():
    from spatialaug.errors import ShapeMismatchError
    from spatialaug.features.aggregate import aggregate
    from spatialaug.spatial.graph import build_graph

    graph = build_graph(_grid(4), k=3)
    with pytest.raises(ShapeMismatchError, match="15 rows"):
        aggregate(np.zeros((15, 3)), graph)


def test_gradient_requires_planar_coordinates():
    from spatialaug.features.aggregate import aggregate
    from spatialaug.spatial.graph import build_graph

    graph = build_graph(np.arange(10.0).reshape(-1, 1), k=2)
    aggregate(np.ones((10, 2)), graph)
    with pytest.raises(ValueError, match="2D"):
        aggregate(np.ones((10, 2)), graph, compute_gradient=True)


def test_gradient_flag_is_third_positional_argument():
    from spatialaug.features.aggregate import aggregate
    from spatialaug.spatial.graph import build_graph

    rng = np.random.default_rng(3)
    coords = rng.uniform(0, 10, (30, 2))
    graph = build_graph(coords, k=4)
    mean, grad = aggregate(rng.normal(size=(30, 2)), graph, True, 1)

    assert grad is not None
    assert grad.shape == mean.shape == (30, 2)
