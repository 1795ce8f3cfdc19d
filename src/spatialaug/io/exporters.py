"""Result export utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd


def save_matrix(matrix: pd.DataFrame, path: str | Path) -> None:
    """Save a table (augmented matrix, coordinates, clusters) to CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    matrix.to_csv(path, index=True)


def save_parameters(params: dict[str, Any], path: str | Path) -> None:
    """Save parameters to JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    clean = {}
    for k, v in params.items():
        if hasattr(v, "item"):  # numpy scalar
            clean[k] = v.item()
        elif isinstance(v, tuple):
            clean[k] = list(v)
        else:
            clean[k] = v

    with open(path, "w") as f:
        json.dump(clean, f, indent=2)
