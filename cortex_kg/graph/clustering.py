"""
Graph Clusterer

Turns a user's full graph into a presentation-safe one.

Pipeline:
    1. Node cap: keep every non-generic node, then fill the remaining
       capacity with the strongest generic (`entity`) nodes. The cap is
       hard; if non-generic nodes alone exceed it, the strongest are kept.
    2. Link admission: links sorted by strength descending are admitted when
       both endpoints were kept, they are not self-loops, and neither
       endpoint has reached its link cap.
    3. Components: BFS over kept nodes, in order, using admitted links.
    4. Bridges: the first node of every smaller component gets one weak
       bridge link to the first node of the largest component, so layouts
       keep clusters near each other.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence

from cortex_kg.types import GENERIC_NODE_TYPE, GraphLink, KnowledgeNode, VisualGraph

logger = logging.getLogger(__name__)

BRIDGE_STRENGTH = 0.1


def graph_links(nodes: Sequence[KnowledgeNode]) -> list[GraphLink]:
    """
    One undirected link per connected pair.

    Connections to ids outside `nodes` are dropped. A link's strength is
    the strength of the node it was first seen from.
    """
    known = {node.id for node in nodes}
    seen: set[tuple[str, str]] = set()
    links: list[GraphLink] = []

    for node in nodes:
        for target in sorted(node.connections):
            if target not in known or target == node.id:
                continue
            link = GraphLink(source=node.id, target=target, strength=node.strength)
            key = link.key()
            if key in seen:
                continue
            seen.add(key)
            links.append(link)

    return links


def cap_nodes(nodes: Sequence[KnowledgeNode], max_nodes: int) -> list[KnowledgeNode]:
    """Non-generic nodes first, then the strongest generic ones, at most max_nodes."""
    important = [n for n in nodes if n.type != GENERIC_NODE_TYPE]
    generic = [n for n in nodes if n.type == GENERIC_NODE_TYPE]

    if len(important) > max_nodes:
        important = sorted(important, key=lambda n: n.strength, reverse=True)[:max_nodes]

    capacity = max_nodes - len(important)
    strongest = sorted(generic, key=lambda n: n.strength, reverse=True)[:capacity]
    return [*important, *strongest]


def admit_links(
    links: Sequence[GraphLink],
    node_ids: set[str],
    max_links_per_node: int,
) -> list[GraphLink]:
    """Strongest links first, subject to endpoint and per-node caps."""
    counts: dict[str, int] = {}
    admitted: list[GraphLink] = []

    for link in sorted(links, key=lambda link: link.strength, reverse=True):
        if link.source not in node_ids or link.target not in node_ids:
            continue
        if link.source == link.target:
            continue
        source_count = counts.get(link.source, 0)
        target_count = counts.get(link.target, 0)
        if source_count >= max_links_per_node or target_count >= max_links_per_node:
            continue
        counts[link.source] = source_count + 1
        counts[link.target] = target_count + 1
        admitted.append(link)

    return admitted


def connected_components(
    node_ids: Sequence[str],
    links: Sequence[GraphLink],
) -> list[list[str]]:
    """
    Components in BFS order, largest first.

    Ties keep discovery order.
    """
    adjacency: dict[str, dict[str, None]] = {node_id: {} for node_id in node_ids}
    for link in links:
        if link.source in adjacency and link.target in adjacency:
            adjacency[link.source][link.target] = None
            adjacency[link.target][link.source] = None

    visited: set[str] = set()
    components: list[list[str]] = []
    for start in node_ids:
        if start in visited:
            continue
        component: list[str] = []
        queue = deque([start])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            component.append(current)
            queue.extend(n for n in adjacency[current] if n not in visited)
        components.append(component)

    components.sort(key=len, reverse=True)
    return components


def bridge_links(components: Sequence[Sequence[str]]) -> list[GraphLink]:
    """One bridge from each smaller component to the largest one's anchor."""
    if len(components) < 2:
        return []
    anchor = components[0][0]
    return [
        GraphLink(source=component[0], target=anchor, strength=BRIDGE_STRENGTH, bridge=True)
        for component in components[1:]
    ]


def compute_visual_graph(
    nodes: Sequence[KnowledgeNode],
    links: Sequence[GraphLink] | None = None,
    max_nodes: int = 80,
    max_links_per_node: int = 6,
) -> VisualGraph:
    """
    Cap, prune, cluster, and bridge a graph for display.

    Args:
        nodes: All of a user's nodes
        links: Candidate links; derived from node connections when omitted
        max_nodes: Hard node cap
        max_links_per_node: Admitted links per endpoint

    Returns:
        VisualGraph with rendered links and bridge links kept apart
    """
    if links is None:
        links = graph_links(nodes)

    kept = cap_nodes(nodes, max_nodes)
    kept_ids = [n.id for n in kept]
    admitted = admit_links(links, set(kept_ids), max_links_per_node)
    components = connected_components(kept_ids, admitted)
    bridges = bridge_links(components)

    logger.debug(
        f"Visual graph: {len(kept)}/{len(nodes)} nodes, {len(admitted)} links, "
        f"{len(components)} components"
    )
    return VisualGraph(nodes=kept, links=admitted, bridges=bridges, components=len(components))
