"""Visualization utilities for scenarios.

This module provides functions for drawing a scenario's topology with its
flows and for plotting per-flow received traffic from a trace.
"""

import os
from typing import Iterable, Optional, Tuple

import matplotlib.pyplot as plt
import networkx as nx

from p2p_sim.core.scenario import Scenario
from p2p_sim.core.trace import TraceEventKind, TraceRecord


def _save_or_show(fig, filename: Optional[str], block: bool) -> None:
    if filename:
        directory = os.path.dirname(filename)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.savefig(filename)
        plt.close(fig)
    else:
        plt.show(block=block)


def save_topology_visualization(
    scenario: Scenario,
    filename: Optional[str] = None,
    figsize: Tuple[int, int] = (10, 4),
    block: bool = True,
) -> None:
    """Save network topology visualization to a file.

    Nodes are laid out left to right along the chain; flows are drawn as
    dashed arcs from their source to the node holding their destination.

    Args:
        scenario: Built scenario.
        filename: Output filename, or None to show it immediately.
        figsize: Figure size as (width, height) in inches.
        block: Whether showing the figure blocks.
    """
    fig = plt.figure(figsize=figsize)

    graph = scenario.topology.graph
    pos = {node: (node, 0.0) for node in graph.nodes()}

    nx.draw_networkx_nodes(graph, pos, node_size=500, node_color="lightblue")
    nx.draw_networkx_edges(graph, pos, edge_color="gray", arrows=False)

    flow_graph = nx.DiGraph()
    flow_graph.add_nodes_from(graph.nodes())
    for flow in scenario.description.flows:
        owner = scenario.topology.find_interface(flow.destination_address).node.id
        flow_graph.add_edge(flow.source, owner)
    nx.draw_networkx_edges(
        flow_graph,
        pos,
        width=2,
        alpha=0.4,
        edge_color="blue",
        style="dashed",
        connectionstyle="arc3,rad=0.3",
        arrows=True,
        arrowsize=20,
    )

    nx.draw_networkx_labels(graph, pos, labels={n: f"n{n}" for n in graph.nodes()})
    edge_labels = {
        (u, v): f"{graph[u][v]['capacity']/1e6:.0f}Mbps\n{graph[u][v]['delay']*1000:.1f}ms"
        for u, v in graph.edges()
    }
    nx.draw_networkx_edge_labels(
        graph,
        pos,
        edge_labels=edge_labels,
        font_size=9,
        rotate=False,
        bbox=dict(facecolor="white", edgecolor="none", alpha=0.7),
    )

    plt.axis("off")
    plt.tight_layout()
    _save_or_show(fig, filename, block)


def plot_flow_throughput(
    records: Iterable[TraceRecord],
    filename: Optional[str] = None,
    block: bool = True,
) -> None:
    """Plot cumulative received bytes of every flow over time.

    Args:
        records: Trace records of one run.
        filename: Output filename, or None to show it immediately.
        block: Whether showing the figure blocks.
    """
    series = {}
    for record in records:
        if record.kind is not TraceEventKind.RECEIVE or not record.component.startswith("flow"):
            continue
        times, totals = series.setdefault(record.component, ([], []))
        times.append(record.timestamp)
        totals.append((totals[-1] if totals else 0) + record.byte_count)

    fig, ax = plt.subplots(figsize=(12, 5))
    for component, (times, totals) in sorted(series.items()):
        ax.step(times, totals, where="post", label=component)

    ax.set_title("Received Bytes per Flow")
    ax.set_xlabel("Simulation Time (seconds)")
    ax.set_ylabel("Bytes")
    ax.grid(True, linestyle="--", alpha=0.7)
    if series:
        ax.legend()
    plt.tight_layout()
    _save_or_show(fig, filename, block)
