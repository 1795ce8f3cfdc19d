"""Visualization: spatial cluster maps and embeddings."""

from spatialaug.visualization.plots import (
    plot_banksy_results,
    plot_embedding,
    plot_spatial_clusters,
)

__all__ = ["plot_banksy_results", "plot_embedding", "plot_spatial_clusters"]
