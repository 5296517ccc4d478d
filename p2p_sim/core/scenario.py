"""Scenario assembly.

ScenarioBuilder turns a ScenarioDescription into a runnable Scenario: a
fresh engine, a chain topology, routing on every node, traffic sources and
sinks, and a trace sink observing all of them. Components are installed in
dependency order: topology, routing, traffic, trace.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from p2p_sim.core.config import ScenarioDescription, SimulationDefaults
from p2p_sim.core.engine import SimulationEngine
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.routing import RoutingActivation, RoutingBinding
from p2p_sim.core.topology import (
    Topology,
    build_chain,
    expand_link_specs,
    planned_address_owners,
)
from p2p_sim.core.trace import TraceSink
from p2p_sim.traffic.applications import (
    FlowReceiver,
    OnOffSource,
    PacketSink,
    packet_id_counter,
)
from p2p_sim.traffic.demand import TrafficDemand

logger = logging.getLogger(__name__)


@dataclass
class Scenario:
    """A fully wired simulation graph, ready to run.

    Attributes:
        description: Description the scenario was built from.
        defaults: Defaults the scenario was built with.
        engine: Engine owning the scenario's timeline.
        topology: Nodes and links.
        routing_bindings: When each node's routing activates.
        sources: Traffic sources, one per flow.
        sinks: Packet sinks keyed by (node id, port).
        receivers: Per-flow receivers, one per flow.
        trace_sink: Recorder attached to every device, node and flow.
    """

    description: ScenarioDescription
    defaults: SimulationDefaults
    engine: SimulationEngine
    topology: Topology
    routing_bindings: List[RoutingBinding]
    sources: List[OnOffSource]
    sinks: Dict[Tuple[int, int], PacketSink]
    receivers: List[FlowReceiver]
    trace_sink: TraceSink

    @property
    def run_duration(self) -> float:
        return self.description.run_duration

    @property
    def closed(self) -> bool:
        return self.trace_sink.closed

    def close(self) -> None:
        """Release a scenario that will not run (or has run).

        Tears the engine down and flushes and closes the trace. Safe to call
        more than once.
        """
        self.engine.teardown()
        self.trace_sink.close()

    def __enter__(self) -> "Scenario":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class ScenarioBuilder:
    """Builds independent Scenario instances from one description.

    Every call to :meth:`build` creates its own engine, topology, routing
    state, packet id counter and random generators, so two builds of the
    same description never share mutable state.
    """

    def __init__(
        self,
        description: ScenarioDescription,
        defaults: Optional[SimulationDefaults] = None,
    ) -> None:
        self.description = description
        self.defaults = defaults or SimulationDefaults()

    @property
    def routing_protocol(self) -> str:
        return self.description.routing_protocol or self.defaults.routing_protocol

    @property
    def seed(self) -> int:
        if self.description.seed is not None:
            return self.description.seed
        return self.defaults.seed

    def _routing_activation(self) -> RoutingActivation:
        return RoutingActivation(
            self.routing_protocol, self.description.routing_activation_time
        )

    def validate(self) -> None:
        """Validate the whole description without touching any engine.

        Raises:
            ConfigurationError: Naming the first field that failed.
        """
        description = self.description
        if not description.run_duration > 0:
            raise ConfigurationError(
                "run_duration", f"must be positive, got {description.run_duration}"
            )
        if self.defaults.queue_size < 1:
            raise ConfigurationError(
                "queue_size", f"must be at least 1, got {self.defaults.queue_size}"
            )
        expand_link_specs(description.node_count, description.link_params)
        self._routing_activation().validate(description.run_duration)
        owners = planned_address_owners(
            description.node_count,
            self.defaults.address_base,
            self.defaults.subnet_prefix,
        )
        TrafficDemand(description.flows, self.seed).validate(
            description.node_count, owners
        )

    def build(self) -> Scenario:
        """Assemble a new scenario.

        Returns:
            The assembled Scenario, in the BUILT state.

        Raises:
            ConfigurationError: If the description is invalid; nothing has
                been scheduled and no trace file has been opened.
        """
        self.validate()
        description = self.description
        defaults = self.defaults

        engine = SimulationEngine()
        trace_sink = TraceSink(description.trace_output_path)
        try:
            topology = build_chain(
                engine,
                description.node_count,
                description.link_params,
                queue_size=defaults.queue_size,
                address_base=defaults.address_base,
                subnet_prefix=defaults.subnet_prefix,
            )
            bindings = self._routing_activation().install(
                topology, engine, description.run_duration
            )
            demand = TrafficDemand(description.flows, self.seed)
            receivers = demand.install(topology, engine, packet_id_counter())

            sources = [*topology.devices(), *topology.nodes, *receivers]
            trace_sink.attach(sources, lambda: engine.now)
        except Exception:
            trace_sink.close()
            raise

        logger.info(
            "Built scenario %s: %d nodes, %d links, %d flows, %d sinks",
            description.id,
            len(topology.nodes),
            len(topology.links),
            len(demand.sources),
            len(demand.sinks),
        )
        return Scenario(
            description=description,
            defaults=defaults,
            engine=engine,
            topology=topology,
            routing_bindings=bindings,
            sources=demand.sources,
            sinks=demand.sinks,
            receivers=receivers,
            trace_sink=trace_sink,
        )
