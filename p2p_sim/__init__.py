"""Scenario construction for point-to-point network simulations.

Describe a chain topology, its routing activation and its traffic flows,
build it into a runnable scenario and run it on a SimPy timeline while every
link and flow event is traced.
"""

from p2p_sim.core.config import (
    ScenarioDescription,
    SimulationDefaults,
    load_scenario,
    scenario_from_dict,
)
from p2p_sim.core.enums import RunState, TrafficPattern
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.runner import RunResult, ScenarioRunner, run_scenario
from p2p_sim.core.scenario import Scenario, ScenarioBuilder
from p2p_sim.core.topology import LinkSpec
from p2p_sim.core.trace import TraceEventKind, TraceRecord, TraceSink, read_trace
from p2p_sim.traffic.demand import FlowSpec

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "FlowSpec",
    "LinkSpec",
    "RunResult",
    "RunState",
    "Scenario",
    "ScenarioBuilder",
    "ScenarioDescription",
    "ScenarioRunner",
    "SimulationDefaults",
    "TraceEventKind",
    "TraceRecord",
    "TraceSink",
    "TrafficPattern",
    "load_scenario",
    "read_trace",
    "run_scenario",
    "scenario_from_dict",
]
