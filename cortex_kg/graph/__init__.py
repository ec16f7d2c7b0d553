"""
Knowledge Graph

    store: node/edge lifecycle (upserts, co-occurrence linking, rebuild)
    clustering: capped, bridged graph for display
"""

from cortex_kg.graph.clustering import compute_visual_graph, graph_links
from cortex_kg.graph.store import KnowledgeGraphStore

__all__ = [
    "KnowledgeGraphStore",
    "compute_visual_graph",
    "graph_links",
]
