"""Side-by-side coordinate layout for plotting several samples at once.

Staggered coordinates are a presentation aid only. They live in columns
prefixed ``staggered_`` and must never be passed to
:func:`spatialaug.spatial.graph.build_graph`: translating groups apart
changes inter-group distances, and reusing them for a search without group
restriction would silently mix neighborhoods.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from spatialaug.spatial.graph import _as_labels, coordinates_to_array

STAGGER_PREFIX = "staggered_"


def stagger_coordinates(
    coordinates: pd.DataFrame | np.ndarray,
    groups: pd.Series | np.ndarray | list,
    gap: float | None = None,
    columns: tuple[str, ...] | None = None,
) -> pd.DataFrame:
    """Translate each group along the first axis so groups sit side by side.

    Groups are laid out in sorted label order. Each block is shifted so its
    minimum first coordinate lies *gap* units after the previous block's
    maximum. Other axes are left untouched.

    Parameters
    ----------
    coordinates : pd.DataFrame | np.ndarray
        Real spatial coordinates ``[n_obs, n_dims]``.
    groups : pd.Series | array-like
        Group label per observation.
    gap : float | None
        Spacing between blocks; defaults to 10% of the widest group.
    columns : tuple[str, ...] | None
        Names of the input axes (defaults to the DataFrame columns or
        ``x, y, ...``).

    Returns
    -------
    pd.DataFrame
        Columns ``staggered_<axis>`` indexed like the input.
    """
    coords, names = coordinates_to_array(coordinates)
    labels = _as_labels(groups, names)

    if columns is None:
        if isinstance(coordinates, pd.DataFrame):
            columns = tuple(str(c) for c in coordinates.columns)
        else:
            columns = tuple("xyz"[i] if i < 3 else f"dim{i}" for i in range(coords.shape[1]))

    codes, uniques = pd.factorize(labels, sort=True)
    widths = np.array([np.ptp(coords[codes == i, 0]) for i in range(len(uniques))])
    if gap is None:
        gap = 0.1 * float(widths.max()) if widths.size and widths.max() > 0 else 1.0

    out = coords.copy()
    offset = 0.0
    for i in range(len(uniques)):
        mask = codes == i
        out[mask, 0] = coords[mask, 0] - coords[mask, 0].min() + offset
        offset += widths[i] + gap

    return pd.DataFrame(out, index=names, columns=[f"{STAGGER_PREFIX}{c}" for c in columns])
