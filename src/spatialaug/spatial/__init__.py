"""Spatial layer: neighbor graph construction and coordinate staggering."""

from spatialaug.spatial.graph import NeighborGraph, build_graph
from spatialaug.spatial.stagger import stagger_coordinates

__all__ = ["NeighborGraph", "build_graph", "stagger_coordinates"]
