"""Enumerations for network simulation.

This module defines enumerations used throughout the network simulator.
"""

from enum import Enum


class TrafficPattern(Enum):
    """Enum for packet interarrival patterns of a flow.

    Attributes:
        CONSTANT: Constant bit rate traffic.
        POISSON: Exponentially distributed interarrival times.
        PARETO: Heavy-tailed interarrival times.
        BURSTY: Bursts of back-to-back packets followed by quiet periods.
    """

    CONSTANT = "constant"
    POISSON = "poisson"
    PARETO = "pareto"
    BURSTY = "bursty"


class RunState(Enum):
    """Lifecycle of a scenario run."""

    BUILT = "built"
    RUNNING = "running"
    STOPPED = "stopped"
