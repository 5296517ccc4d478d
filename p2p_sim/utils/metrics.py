"""Metrics utilities for scenario traces.

This module provides functions for summarizing a run from its trace records,
including per-flow throughput, per-device transmitted bytes, drop counts and
Jain's fairness index. Records are consumed in a single pass, so a lazily
read trace file never has to fit in memory.
"""

import json
import os
from collections import defaultdict
from typing import Any, Dict, Iterable, Optional

from p2p_sim.core.trace import TraceEventKind, TraceRecord


def _count_reception(stats: Dict[int, Dict[str, float]], record: TraceRecord) -> None:
    if record.kind is not TraceEventKind.RECEIVE or not record.component.startswith("flow"):
        return
    flow_id = int(record.component[len("flow"):])
    flow = stats.setdefault(
        flow_id,
        {"packets": 0, "bytes": 0, "first": record.timestamp, "last": record.timestamp},
    )
    flow["packets"] += 1
    flow["bytes"] += record.byte_count
    flow["last"] = record.timestamp


def _finish_flows(
    stats: Dict[int, Dict[str, float]], duration: Optional[float]
) -> Dict[int, Dict[str, float]]:
    for flow in stats.values():
        window = duration if duration is not None else flow["last"] - flow["first"]
        flow["throughput"] = flow["bytes"] * 8 / window if window > 0 else 0.0
    return dict(sorted(stats.items()))


def flow_statistics(
    records: Iterable[TraceRecord], duration: Optional[float] = None
) -> Dict[int, Dict[str, float]]:
    """Per-flow reception statistics.

    Args:
        records: Trace records of one run.
        duration: Window the throughput is averaged over. If None, the span
            between a flow's first and last reception is used.

    Returns:
        Statistics keyed by flow id: packets, bytes, first, last, throughput
        (bits per second).
    """
    stats: Dict[int, Dict[str, float]] = {}
    for record in records:
        _count_reception(stats, record)
    return _finish_flows(stats, duration)


def calculate_fairness_index(flow_throughputs: Dict[Any, float]) -> float:
    """Calculate Jain's fairness index for flow throughputs.

    Args:
        flow_throughputs: Dictionary mapping flow IDs to throughputs.

    Returns:
        Fairness index between 0 and 1 (1 is perfectly fair).
    """
    throughputs = list(flow_throughputs.values())
    n = len(throughputs)

    if n == 0:
        return 0.0

    sum_throughput = sum(throughputs)
    sum_squared = sum(x**2 for x in throughputs)

    if sum_squared == 0:
        return 0.0

    return (sum_throughput**2) / (n * sum_squared)


def summarize_trace(
    records: Iterable[TraceRecord], duration: Optional[float] = None
) -> Dict[str, Any]:
    """Calculate performance metrics of one run.

    Args:
        records: Trace records of the run.
        duration: Averaging window for flow throughput.

    Returns:
        Dictionary with ``flows``, ``transmitted_bytes``, ``drops``,
        ``records`` and ``fairness`` entries.
    """
    transmitted: Dict[str, int] = defaultdict(int)
    drops: Dict[str, int] = defaultdict(int)
    receptions: Dict[int, Dict[str, float]] = {}
    count = 0
    for record in records:
        count += 1
        if record.kind is TraceEventKind.TRANSMIT:
            transmitted[record.component] += record.byte_count
        elif record.kind is TraceEventKind.DROP:
            drops[f"{record.component}:{record.note or 'unknown'}"] += 1
        else:
            _count_reception(receptions, record)

    flows = _finish_flows(receptions, duration)
    return {
        "records": count,
        "flows": flows,
        "transmitted_bytes": dict(sorted(transmitted.items())),
        "drops": dict(sorted(drops.items())),
        "fairness": calculate_fairness_index(
            {flow_id: flow["throughput"] for flow_id, flow in flows.items()}
        ),
    }


def save_metrics_to_json(metrics: Dict[str, Any], filename: str = "results/metrics.json") -> None:
    """Save metrics to a JSON file.

    Args:
        metrics: Dictionary of metrics to save.
        filename: Output filename.
    """
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)

    # JSON object keys must be strings
    serializable_metrics = dict(metrics)
    if "flows" in metrics:
        serializable_metrics["flows"] = {
            f"flow{flow_id}": stats for flow_id, stats in metrics["flows"].items()
        }

    with open(filename, "w") as f:
        json.dump(serializable_metrics, f, indent=2)
