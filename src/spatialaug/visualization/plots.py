"""Spatial cluster maps and embedding plots."""

from __future__ import annotations

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns


def _palette(labels: pd.Series) -> dict[str, tuple]:
    categories = sorted(pd.Series(labels).astype(str).unique(), key=lambda s: (len(s), s))
    colors = sns.color_palette("tab20" if len(categories) > 10 else "tab10", len(categories))
    return dict(zip(categories, colors))


def plot_spatial_clusters(
    coords: pd.DataFrame | np.ndarray,
    labels: pd.Series | np.ndarray,
    ax: plt.Axes | None = None,
    s: float = 4,
    title: str = "Spatial clusters",
) -> plt.Axes:
    """Scatter observations at their (possibly staggered) coordinates.

    Parameters
    ----------
    coords : pd.DataFrame | np.ndarray
        Coordinates ``[n_obs, 2]``; staggered coordinates keep grouped
        samples from overlapping.
    labels : pd.Series | np.ndarray
        Cluster or group label per observation.
    ax : plt.Axes | None
        Axes to draw on (created if *None*).
    s : float
        Point size.
    title : str
        Axes title.

    Returns
    -------
    plt.Axes
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 5))

    xy = np.asarray(coords, dtype=float)
    frame = pd.DataFrame(
        {"x": xy[:, 0], "y": xy[:, 1], "label": np.asarray(labels).astype(str)}
    )
    sns.scatterplot(
        data=frame,
        x="x",
        y="y",
        hue="label",
        palette=_palette(frame["label"]),
        s=s,
        linewidth=0,
        ax=ax,
    )
    ax.set_title(title, fontsize=10, fontweight="bold")
    ax.set_xlabel("spatial1")
    ax.set_ylabel("spatial2")
    ax.set_aspect("equal", adjustable="box")
    ax.legend(bbox_to_anchor=(1.05, 1), loc="upper left", fontsize=8, markerscale=2)
    return ax


def plot_embedding(
    clusters: pd.DataFrame,
    ax: plt.Axes | None = None,
    s: float = 4,
) -> plt.Axes | None:
    """Scatter the 2D embedding columns of *clusters*, coloured by cluster.

    Returns ``None`` when *clusters* carries no embedding.
    """
    emb_cols = [c for c in clusters.columns if c.endswith(("_1", "_2"))]
    if len(emb_cols) < 2:
        return None
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 5))

    name = emb_cols[0].rsplit("_", 1)[0]
    labels = clusters["cluster"].astype(str)
    sns.scatterplot(
        x=clusters[emb_cols[0]].to_numpy(),
        y=clusters[emb_cols[1]].to_numpy(),
        hue=labels.to_numpy(),
        palette=_palette(labels),
        s=s,
        linewidth=0,
        legend=False,
        ax=ax,
    )
    ax.set_title(name.upper(), fontsize=10, fontweight="bold")
    ax.set_xlabel(f"{name}1")
    ax.set_ylabel(f"{name}2")
    ax.set_xticks([])
    ax.set_yticks([])
    return ax


def plot_banksy_results(
    coords: pd.DataFrame | np.ndarray,
    clusters: pd.DataFrame,
    save_path: str | None = None,
    title: str | None = None,
    figsize: tuple[float, float] = (13, 5),
    dpi: int = 300,
) -> None:
    """Two-panel figure: spatial cluster map and embedding.

    Parameters
    ----------
    coords : pd.DataFrame | np.ndarray
        Plotting coordinates (staggered for grouped data).
    clusters : pd.DataFrame
        Output of :meth:`spatialaug.Banksy.embed_and_cluster`.
    save_path : str | None
        File path to save the figure.
    title : str | None
        Figure title.
    figsize : tuple
        Figure size.
    dpi : int
        Resolution.
    """
    fig, axes = plt.subplots(1, 2, figsize=figsize)
    plot_spatial_clusters(coords, clusters["cluster"], ax=axes[0], title="A. Spatial clusters")
    if plot_embedding(clusters, ax=axes[1]) is None:
        axes[1].axis("off")
    else:
        axes[1].set_title(f"B. {axes[1].get_title()}", fontsize=10, fontweight="bold")

    if title:
        fig.suptitle(title, fontsize=12, fontweight="bold")
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=dpi, bbox_inches="tight", pad_inches=0.2)

    plt.close(fig)
