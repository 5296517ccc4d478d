"""Routing protocols that can be attached to nodes.

A routing protocol is an opaque per-node behavior with two entry points:
``start()``, called when the protocol activates, and ``route_output()``,
called for every packet the node originates or forwards. Routing table
maintenance after activation is the protocol's own business.
"""

import ipaddress
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set

import networkx as nx

if TYPE_CHECKING:
    from p2p_sim.core.link import PointToPointDevice
    from p2p_sim.core.node import Node
    from p2p_sim.core.topology import Topology

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    """Host route towards one destination address."""

    destination: ipaddress.IPv4Address
    device: "PointToPointDevice"
    gateway: ipaddress.IPv4Address
    metric: float


class RoutingProtocol(ABC):
    """Abstract base class for routing protocols."""

    name = "base"

    def __init__(self, node: "Node", topology: "Topology") -> None:
        """
        Initialize the protocol.

        Args:
            node: The node associated with this protocol instance.
            topology: Topology the node belongs to.
        """
        self.node = node
        self.topology = topology
        self.active = False
        self.routing_table: Dict[ipaddress.IPv4Address, Route] = {}

    def start(self) -> None:
        """Activate the protocol."""
        self.active = True
        logger.debug("%s routing active on %r", self.name, self.node)
        self.update_routing_table()

    @abstractmethod
    def update_routing_table(self) -> None:
        """Recompute the routing table."""

    def route_output(
        self, destination: ipaddress.IPv4Address
    ) -> Optional[Route]:
        """
        Select the route for a packet.

        Args:
            destination: Destination address of the packet.

        Returns:
            The route, or None if the protocol is inactive or has no route.
        """
        if not self.active:
            return None
        return self.routing_table.get(destination)

    def _install_paths(self, graph: nx.Graph, weight: Optional[str]) -> None:
        """Fill the routing table with host routes to every node in ``graph``."""
        source = self.node.id
        if weight is None:
            paths = nx.single_source_shortest_path(graph, source)
        else:
            paths = nx.single_source_dijkstra_path(graph, source, weight=weight)

        table: Dict[ipaddress.IPv4Address, Route] = {}
        for destination, path in paths.items():
            if destination == source or len(path) < 2:
                continue
            next_hop = path[1]
            device = self.topology.device_between(source, next_hop)
            gateway = device.peer.address.ip
            if weight is None:
                metric = float(len(path) - 1)
            else:
                metric = nx.path_weight(graph, path, weight)
            for address in self.topology.nodes[destination].addresses:
                table[address] = Route(address, device, gateway, metric)
        self.routing_table = table

    def __repr__(self) -> str:
        return f"{self.name}({self.node.id})"


class StaticRouting(RoutingProtocol):
    """Shortest-delay routes computed once, over the whole topology."""

    name = "static"

    def update_routing_table(self) -> None:
        self._install_paths(self.topology.graph, weight="delay")


class LinkStateDatabase:
    """Topology knowledge shared by the link-state routers of one scenario.

    A router joins when it activates; every join is flooded to all active
    members, which recompute their tables over the subgraph of active nodes.
    """

    def __init__(self, topology: "Topology") -> None:
        self.topology = topology
        self.members: List["LinkStateRouting"] = []

    @property
    def active_nodes(self) -> Set[int]:
        return {member.node.id for member in self.members}

    def active_graph(self) -> nx.Graph:
        return self.topology.graph.subgraph(self.active_nodes)

    def join(self, router: "LinkStateRouting") -> None:
        if router not in self.members:
            self.members.append(router)
        for member in self.members:
            member.recompute()


class LinkStateRouting(RoutingProtocol):
    """Proactive link-state routing with hop-count metric (OLSR-like)."""

    name = "link_state"

    def __init__(
        self, node: "Node", topology: "Topology", database: LinkStateDatabase
    ) -> None:
        super().__init__(node, topology)
        self.database = database

    def update_routing_table(self) -> None:
        self.database.join(self)

    def recompute(self) -> None:
        self._install_paths(self.database.active_graph(), weight=None)


ROUTING_PROTOCOLS = ("link_state", "olsr", "static")


def routing_factory(
    routing_type: str, topology: "Topology"
) -> Callable[["Node"], RoutingProtocol]:
    """
    Factory function for per-node routing protocol instances.

    Link-state routers created by one factory share one database, so two
    factories never share routing state.

    Args:
        routing_type: One of ``link_state`` (alias ``olsr``) or ``static``.
        topology: Topology the nodes belong to.

    Returns:
        A callable creating the protocol for a node.
    """
    if routing_type in ("link_state", "olsr"):
        database = LinkStateDatabase(topology)
        return lambda node: LinkStateRouting(node, topology, database)
    elif routing_type == "static":
        return lambda node: StaticRouting(node, topology)
    raise ValueError(f"Unknown routing protocol: {routing_type}")
