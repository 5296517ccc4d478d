"""Traffic demand: the synthetic flows of a scenario.

Each FlowSpec becomes one OnOffSource on its origin node. Sinks are
installed once per (node, port): flows converging on the same destination
port share a single PacketSink.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Tuple, Union

import numpy as np

from p2p_sim.core.engine import SimulationEngine
from p2p_sim.core.enums import TrafficPattern
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.topology import Topology
from p2p_sim.traffic.applications import FlowReceiver, OnOffSource, PacketSink
from p2p_sim.traffic.generators import interval_function

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowSpec:
    """One synthetic flow.

    Attributes:
        source: Index of the origin node.
        destination: Destination IPv4 address.
        rate: Sending rate in bits per second.
        packet_size: Payload size in bytes.
        start: Time the source starts sending.
        stop: Time the source stops sending.
        port: Destination UDP port.
        pattern: Interarrival pattern.
    """

    source: int
    destination: Union[str, ipaddress.IPv4Address]
    rate: float
    packet_size: int
    start: float
    stop: float
    port: int = 9
    pattern: TrafficPattern = TrafficPattern.CONSTANT

    @property
    def destination_address(self) -> ipaddress.IPv4Address:
        return ipaddress.IPv4Address(self.destination)


class TrafficDemand:
    """Installs the sources and sinks of a set of flows.

    Attributes:
        flows: Flow specifications, indexed by flow id.
        seed: Seed of the per-flow random generators.
        sources: Installed sources, one per flow.
        sinks: Installed sinks, keyed by (node id, port).
    """

    def __init__(self, flows: Sequence[FlowSpec], seed: int = 42) -> None:
        self.flows = list(flows)
        self.seed = seed
        self.sources: List[OnOffSource] = []
        self.sinks: Dict[Tuple[int, int], PacketSink] = {}

    def validate(
        self,
        node_count: int,
        addresses: Dict[ipaddress.IPv4Address, int],
    ) -> None:
        """Check every flow against the planned topology.

        Args:
            node_count: Number of nodes in the topology.
            addresses: Installed interface addresses mapped to their node id.

        Raises:
            ConfigurationError: Naming the first offending flow field.
        """
        for index, flow in enumerate(self.flows):
            field = f"flows[{index}]"
            if not 0 <= flow.source < node_count:
                raise ConfigurationError(
                    f"{field}.source", f"node {flow.source} is not in 0..{node_count - 1}"
                )
            try:
                destination = flow.destination_address
            except ValueError as exc:
                raise ConfigurationError(f"{field}.destination", str(exc)) from exc
            if destination not in addresses:
                raise ConfigurationError(
                    f"{field}.destination",
                    f"{destination} is not assigned to any installed interface",
                )
            if addresses[destination] == flow.source:
                raise ConfigurationError(
                    f"{field}.destination",
                    f"{destination} belongs to the source node {flow.source}",
                )
            if not flow.rate > 0:
                raise ConfigurationError(f"{field}.rate", f"must be positive, got {flow.rate}")
            if not flow.packet_size > 0:
                raise ConfigurationError(
                    f"{field}.packet_size", f"must be positive, got {flow.packet_size}"
                )
            if flow.start < 0:
                raise ConfigurationError(f"{field}.start", f"must be non-negative, got {flow.start}")
            if not flow.stop > flow.start:
                raise ConfigurationError(
                    f"{field}.stop", f"{flow.stop} must be after start {flow.start}"
                )
            if not 0 < flow.port < 65536:
                raise ConfigurationError(f"{field}.port", f"{flow.port} is not a valid UDP port")

    def install(
        self,
        topology: Topology,
        engine: SimulationEngine,
        packet_ids: Iterator[int],
    ) -> List[FlowReceiver]:
        """Create sources and sinks and schedule their start and stop.

        Args:
            topology: Topology with addressed interfaces.
            engine: Engine to schedule start/stop events on.
            packet_ids: Packet id counter shared by all sources of the scenario.

        Returns:
            The per-flow receivers, in flow order.
        """
        self.validate(len(topology.nodes), topology.address_owners())

        logger.info("Create applications.")
        receivers: List[FlowReceiver] = []
        for flow_id, flow in enumerate(self.flows):
            sink_node = topology.find_interface(flow.destination_address).node
            key = (sink_node.id, flow.port)
            sink = self.sinks.get(key)
            if sink is None:
                sink = self.sinks[key] = PacketSink(sink_node, flow.port, flow.start, flow.stop)
            receivers.append(sink.add_flow(flow_id, flow.start, flow.stop))

            rng = np.random.default_rng([self.seed, flow_id])
            source = OnOffSource(
                engine,
                topology.nodes[flow.source],
                flow_id,
                flow.destination_address,
                flow.port,
                flow.packet_size,
                interval_function(flow.pattern, flow.rate, flow.packet_size, rng),
                flow.stop,
                packet_ids,
            )
            self.sources.append(source)
            logger.debug(
                "flow%d: n%d -> %s:%d at %.0f bit/s, %d bytes, %.3f-%.3fs",
                flow_id,
                flow.source,
                flow.destination_address,
                flow.port,
                flow.rate,
                flow.packet_size,
                flow.start,
                flow.stop,
            )

        # Sinks listen before their sources send at the same timestamp.
        for sink in self.sinks.values():
            engine.schedule(sink.start_time, sink.start)
            engine.schedule(sink.stop_time, sink.stop)
        for source, flow in zip(self.sources, self.flows):
            engine.schedule(flow.start, source.start)
            engine.schedule(flow.stop, source.stop)
        return receivers

