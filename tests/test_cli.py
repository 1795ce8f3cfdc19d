"""Tests for the command-line interface."""

import numpy as np
import pandas as pd


def _write_inputs(tmp_path, n_per_group=40, x_key="x", y_key="y"):
    rng = np.random.default_rng(1)
    n = 2 * n_per_group
    index = [f"cell_{i}" for i in range(n)]
    pd.DataFrame(
        rng.poisson(4.0, (n, 5)).astype(float),
        index=index,
        columns=[f"g{i}" for i in range(5)],
    ).to_csv(tmp_path / "expr.csv")
    pd.DataFrame(
        {
            x_key: rng.uniform(0, 10, n),
            y_key: rng.uniform(0, 10, n),
            "sample": np.repeat(["A", "B"], n_per_group),
        },
        index=index,
    ).to_csv(tmp_path / "coords.csv")
    return tmp_path / "expr.csv", tmp_path / "coords.csv"


def test_augment_writes_outputs(tmp_path):
    from typer.testing import CliRunner

    from spatialaug.cli import app

    expr, coords = _write_inputs(tmp_path)
    out = tmp_path / "out"
    result = CliRunner().invoke(
        app,
        [
            "augment", str(expr),
            "--coords", str(coords),
            "--output-dir", str(out),
            "--features", "all",
            "--group", "sample",
            "-k", "5",
            "-q",
        ],
    )

    assert result.exit_code == 0, result.output
    assert (out / "augmented.csv").exists()
    assert (out / "parameters.json").exists()
    assert (out / "staggered_coords.csv").exists()

    aug = pd.read_csv(out / "augmented.csv", index_col=0)
    assert aug.shape == (80, 10)


def test_invalid_lambda_exits_with_error(tmp_path):
    from typer.testing import CliRunner

    from spatialaug.cli import app

    expr, coords = _write_inputs(tmp_path)
    result = CliRunner().invoke(
        app,
        ["augment", str(expr), "--coords", str(coords), "--lambda", "1.5", "-q",
         "--output-dir", str(tmp_path / "out")],
    )
    assert result.exit_code == 1
    assert "lambda must lie in" in result.output


def test_csv_without_coords_fails(tmp_path):
    from typer.testing import CliRunner

    from spatialaug.cli import app

    expr, _ = _write_inputs(tmp_path)
    result = CliRunner().invoke(app, ["augment", str(expr), "-q", "-o", str(tmp_path / "out")])
    assert result.exit_code == 1
    assert "--coords" in result.output


def test_info():
    from typer.testing import CliRunner

    from spatialaug.cli import app

    result = CliRunner().invoke(app, ["info"])
    assert result.exit_code == 0
    assert "Version" in result.output


def test_cluster_with_custom_coordinate_columns(tmp_path):
    import json

    from typer.testing import CliRunner

    from spatialaug.cli import app

    expr, coords = _write_inputs(tmp_path, x_key="row", y_key="col")
    out = tmp_path / "out"
    result = CliRunner().invoke(
        app,
        [
            "cluster", str(expr),
            "--coords", str(coords),
            "--output-dir", str(out),
            "--x-key", "row",
            "--y-key", "col",
            "--features", "all",
            "--gradient",
            "--harmonic", "2",
            "--n-jobs", "2",
            "--group", "sample",
            "-k", "5",
            "--method", "kmeans",
            "--n-clusters", "3",
            "--embedding", "none",
            "--no-plot",
            "-q",
        ],
    )

    assert result.exit_code == 0, result.output
    clusters = pd.read_csv(out / "clusters.csv", index_col=0)
    assert len(clusters) == 80
    assert clusters["cluster"].nunique() == 3

    params = json.loads((out / "parameters.json").read_text())
    assert params["coord_keys"] == ["row", "col"]
    assert params["harmonic"] == 2
    assert params["compute_gradient"] is True
    assert not (out / "clusters.png").exists()


def test_invalid_input_values_exit_with_error(tmp_path):
    from typer.testing import CliRunner

    from spatialaug.cli import app

    expr, coords = _write_inputs(tmp_path)
    frame = pd.read_csv(expr, index_col=0)
    frame.iloc[0, 0] = -1.0
    frame.to_csv(expr)

    result = CliRunner().invoke(
        app,
        ["augment", str(expr), "--coords", str(coords), "--features", "all", "-q",
         "-o", str(tmp_path / "out")],
    )
    assert result.exit_code == 1
    assert "non-negative" in result.output
