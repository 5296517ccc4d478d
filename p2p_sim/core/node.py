"""Node class for network simulation.

This module defines the Node class, which represents a host/router in the
simulated point-to-point network: it owns one device per attached link,
forwards transit packets through its routing protocol and delivers local
packets to the application bound on the destination port.
"""

import ipaddress
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol

from p2p_sim.core.engine import SimulationEngine
from p2p_sim.core.packet import Packet
from p2p_sim.core.trace import TraceEventKind, TraceSource

if TYPE_CHECKING:
    from p2p_sim.core.link import PointToPointDevice
    from p2p_sim.core.routing_algorithms import RoutingProtocol

logger = logging.getLogger(__name__)


class PortHandler(Protocol):
    def handle(self, packet: Packet) -> None: ...


class Node(TraceSource):
    """Represents a network node.

    Attributes:
        engine: Simulation engine.
        id: Index of the node in its topology.
        devices: Point-to-point devices, in the order links were attached.
        routing: Routing protocol installed on the node, if any.
        ports: Applications bound to UDP ports.
        packets_delivered: Packets handed to a local application.
        packets_forwarded: Transit packets sent on towards their destination.
        packets_dropped: Packets dropped by the node itself.
    """

    def __init__(self, engine: SimulationEngine, node_id: int) -> None:
        super().__init__(f"n{node_id}")
        self.engine = engine
        self.id = node_id
        self.devices: List["PointToPointDevice"] = []
        self.routing: Optional["RoutingProtocol"] = None
        self.ports: Dict[int, PortHandler] = {}
        self.packets_delivered = 0
        self.packets_forwarded = 0
        self.packets_dropped = 0

    @property
    def addresses(self) -> List[ipaddress.IPv4Address]:
        return [device.address.ip for device in self.devices]

    def add_device(self, device: "PointToPointDevice") -> None:
        if device.node is not self:
            raise ValueError(f"{device} belongs to another node")
        self.devices.append(device)

    def set_routing(self, routing: "RoutingProtocol") -> None:
        self.routing = routing

    def owns(self, address: ipaddress.IPv4Address) -> bool:
        return any(device.address.ip == address for device in self.devices)

    def bind(self, port: int, handler: PortHandler) -> None:
        """Bind an application to a UDP port on every interface.

        Raises:
            ValueError: If the port is already bound on this node.
        """
        if port in self.ports:
            raise ValueError(f"Port {port} is already bound on node {self.id}")
        self.ports[port] = handler

    def unbind(self, port: int) -> None:
        self.ports.pop(port, None)

    def send(self, packet: Packet) -> None:
        """Send a locally generated packet."""
        route = self.routing.route_output(packet.destination) if self.routing else None
        if route is None:
            self.drop(packet, "no-route")
            return
        packet.source = route.device.address.ip
        route.device.send(packet)

    def receive(self, packet: Packet, device: "PointToPointDevice") -> None:
        """Handle a packet that arrived on one of this node's devices.

        Args:
            packet: The packet that arrived.
            device: The device it arrived on.
        """
        if self.owns(packet.destination):
            handler = self.ports.get(packet.port)
            if handler is None:
                self.drop(packet, "no-socket")
                return
            self.packets_delivered += 1
            handler.handle(packet)
            return

        packet.ttl -= 1
        if packet.ttl <= 0:
            self.drop(packet, "ttl-expired")
            return
        route = self.routing.route_output(packet.destination) if self.routing else None
        if route is None:
            self.drop(packet, "no-route")
            return
        self.packets_forwarded += 1
        route.device.send(packet)

    def drop(self, packet: Packet, reason: str) -> None:
        self.packets_dropped += 1
        self.emit(TraceEventKind.DROP, packet.wire_size, reason)

    def __repr__(self) -> str:
        return f"Node({self.id})"
