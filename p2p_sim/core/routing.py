"""Routing activation: which protocol runs on which node, and from when."""

import logging
from dataclasses import dataclass
from typing import List

from p2p_sim.core.engine import SimulationEngine
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.routing_algorithms import ROUTING_PROTOCOLS, routing_factory
from p2p_sim.core.topology import Topology

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingBinding:
    node_id: int
    activation_time: float


class RoutingActivation:
    """Installs one routing protocol on every node, active from one time.

    Attributes:
        protocol: Routing protocol name.
        activation_time: Simulated time at which every node's protocol starts.
    """

    def __init__(self, protocol: str = "olsr", activation_time: float = 0.0) -> None:
        self.protocol = protocol
        self.activation_time = activation_time

    def validate(self, stop_time: float) -> None:
        """Check the activation window against the planned stop time.

        Raises:
            ConfigurationError: If the protocol is unknown or the activation
                time is negative or later than ``stop_time``.
        """
        if self.protocol not in ROUTING_PROTOCOLS:
            raise ConfigurationError(
                "routing_protocol",
                f"unknown protocol {self.protocol!r}, expected one of {', '.join(ROUTING_PROTOCOLS)}",
            )
        if self.activation_time < 0:
            raise ConfigurationError(
                "routing_activation_time",
                f"must be non-negative, got {self.activation_time}",
            )
        if self.activation_time > stop_time:
            raise ConfigurationError(
                "routing_activation_time",
                f"{self.activation_time} is after the run stop time {stop_time}",
            )

    def install(
        self, topology: Topology, engine: SimulationEngine, stop_time: float
    ) -> List[RoutingBinding]:
        """Attach the protocol to every node and schedule its activation.

        Args:
            topology: Topology whose nodes get a protocol instance.
            engine: Engine the activations are scheduled on.
            stop_time: Planned stop time of the run.

        Returns:
            One binding per node, in node order.
        """
        self.validate(stop_time)
        logger.info("Enabling %s routing at t=%.3fs.", self.protocol, self.activation_time)
        create = routing_factory(self.protocol, topology)
        bindings = []
        for node in topology.nodes:
            protocol = create(node)
            node.set_routing(protocol)
            engine.schedule(self.activation_time, protocol.start)
            bindings.append(RoutingBinding(node.id, self.activation_time))
        return bindings
