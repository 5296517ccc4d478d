"""Chain topology construction.

A chain of N nodes is connected by N-1 point-to-point links, node i to node
i+1. Each link gets its own /24 (by default) from the addressing plan.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import networkx as nx

from p2p_sim.core.addressing import plan_addresses
from p2p_sim.core.engine import SimulationEngine
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.link import PointToPointDevice, PointToPointLink
from p2p_sim.core.node import Node

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkSpec:
    """Parameters of one point-to-point link.

    Attributes:
        data_rate: Capacity in bits per second.
        delay: One-way propagation delay in seconds.
    """

    data_rate: float
    delay: float


@dataclass(frozen=True)
class LinkHandle:
    """Addressing view of a built link."""

    link_id: int
    endpoints: Tuple[int, int]
    addresses: Tuple[ipaddress.IPv4Address, ipaddress.IPv4Address]

    def get_address(self, index: int) -> ipaddress.IPv4Address:
        """Address of endpoint ``index`` (0 = lower node, 1 = higher node)."""
        return self.addresses[index]


LinkSpecs = Union[LinkSpec, Sequence[LinkSpec]]


def expand_link_specs(node_count: int, link_specs: LinkSpecs) -> List[LinkSpec]:
    """Return exactly one spec per link, validating the chain request.

    A single spec (or a one-element sequence) applies to every link.

    Raises:
        ConfigurationError: If the chain is too short, the number of specs
            does not match, or a parameter is not positive.
    """
    if node_count < 2:
        raise ConfigurationError("node_count", f"must be at least 2, got {node_count}")
    if isinstance(link_specs, LinkSpec):
        link_specs = [link_specs]
    specs = list(link_specs)
    if len(specs) == 1:
        specs = specs * (node_count - 1)
    if len(specs) != node_count - 1:
        raise ConfigurationError(
            "link_params",
            f"expected 1 or {node_count - 1} entries, got {len(specs)}",
        )
    for index, spec in enumerate(specs):
        if not spec.data_rate > 0:
            raise ConfigurationError(
                f"link_params[{index}].bandwidth", f"must be positive, got {spec.data_rate}"
            )
        if not spec.delay > 0:
            raise ConfigurationError(
                f"link_params[{index}].delay", f"must be positive, got {spec.delay}"
            )
    return specs


class Topology:
    """Nodes and links of one scenario.

    Attributes:
        nodes: Nodes indexed by id.
        links: Links indexed by id.
        graph: Undirected NetworkX graph; edges carry ``link``, ``delay``
            and ``capacity`` attributes.
    """

    def __init__(self) -> None:
        self.nodes: List[Node] = []
        self.links: List[PointToPointLink] = []
        self.graph = nx.Graph()
        self._interfaces: Dict[ipaddress.IPv4Address, PointToPointDevice] = {}

    def add_node(self, node: Node) -> None:
        self.nodes.append(node)
        self.graph.add_node(node.id)

    def add_link(self, link: PointToPointLink) -> None:
        source, destination = link.endpoints
        if self.graph.has_edge(source, destination):
            raise ValueError(f"Nodes {source} and {destination} are already linked")
        self.links.append(link)
        self.graph.add_edge(
            source,
            destination,
            link=link,
            capacity=link.capacity,
            delay=link.propagation_delay,
        )
        for device in link.devices:
            self._interfaces[device.address.ip] = device

    def handles(self) -> List[LinkHandle]:
        """One addressing handle per link."""
        return [
            LinkHandle(
                link.id,
                link.endpoints,
                (link.devices[0].address.ip, link.devices[1].address.ip),
            )
            for link in self.links
        ]

    def addresses(self) -> List[ipaddress.IPv4Address]:
        return list(self._interfaces)

    def address_owners(self) -> Dict[ipaddress.IPv4Address, int]:
        """Every installed address mapped to the id of the node holding it."""
        return {address: device.node.id for address, device in self._interfaces.items()}

    def find_interface(
        self, address: Union[str, ipaddress.IPv4Address]
    ) -> Optional[PointToPointDevice]:
        """Return the device holding ``address``, or None."""
        return self._interfaces.get(ipaddress.IPv4Address(address))

    def device_between(self, node_id: int, neighbour_id: int) -> PointToPointDevice:
        """Device of ``node_id`` on its link towards ``neighbour_id``."""
        link = self.graph[node_id][neighbour_id]["link"]
        return link.device_for(node_id)

    def devices(self) -> List[PointToPointDevice]:
        return [device for link in self.links for device in link.devices]


def build_chain(
    engine: SimulationEngine,
    node_count: int,
    link_specs: LinkSpecs,
    queue_size: int = 100,
    address_base: str = "10.1.0.0/16",
    subnet_prefix: int = 24,
) -> Topology:
    """Create a chain topology.

    Nothing is scheduled on the engine; devices only create events once
    traffic is sent.

    Args:
        engine: Simulation engine the devices will schedule on.
        node_count: Number of nodes in the chain.
        link_specs: One spec for all links, or one per link.
        queue_size: DropTail queue size of every device, in packets.
        address_base: Block the per-link subnets are carved from.
        subnet_prefix: Prefix length of each per-link subnet.

    Returns:
        The built Topology.
    """
    specs = expand_link_specs(node_count, link_specs)
    plan = plan_addresses(len(specs), address_base, subnet_prefix)

    logger.info("Create nodes.")
    topology = Topology()
    for node_id in range(node_count):
        topology.add_node(Node(engine, node_id))

    logger.info("Create channels.")
    for link_id, (spec, addresses) in enumerate(zip(specs, plan)):
        link = PointToPointLink(
            engine,
            link_id,
            (topology.nodes[link_id], topology.nodes[link_id + 1]),
            addresses,
            spec.data_rate,
            spec.delay,
            queue_size,
        )
        topology.add_link(link)
        logger.debug("Link %d: %r %s <-> %s", link_id, link, *addresses)
    return topology


def planned_address_owners(
    node_count: int, address_base: str = "10.1.0.0/16", subnet_prefix: int = 24
) -> Dict[ipaddress.IPv4Address, int]:
    """Addresses a chain of ``node_count`` nodes will get, without building it.

    Link i joins node i (first address) and node i+1 (second address).
    """
    owners: Dict[ipaddress.IPv4Address, int] = {}
    for link_id, (left, right) in enumerate(
        plan_addresses(node_count - 1, address_base, subnet_prefix)
    ):
        owners[left.ip] = link_id
        owners[right.ip] = link_id + 1
    return owners
