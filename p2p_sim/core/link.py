"""Point-to-point link for network simulation.

This module defines the PointToPointLink class, a full-duplex link between
two nodes, and the PointToPointDevice attached at each end. Each device owns
a DropTail transmit queue; serialization and propagation are modelled as
engine events.
"""

import ipaddress
from collections import deque
from typing import TYPE_CHECKING, Deque, Optional, Tuple

from p2p_sim.core.engine import SimulationEngine
from p2p_sim.core.packet import Packet
from p2p_sim.core.trace import TraceEventKind, TraceSource

if TYPE_CHECKING:
    from p2p_sim.core.node import Node


class PointToPointDevice(TraceSource):
    """One end of a point-to-point link.

    Attributes:
        engine: Simulation engine.
        node: Node the device is installed on.
        link: Link the device belongs to.
        address: IPv4 interface assigned to the device.
        queue_size: Maximum number of packets waiting for transmission.
        queue: Packets waiting for transmission.
        busy: Whether the device is currently serializing a packet.
        peer: Device at the other end of the link.
        packets_sent: Number of packets fully transmitted.
        bytes_sent: Number of on-wire bytes transmitted.
        packets_dropped: Number of packets rejected by the full queue.
    """

    def __init__(
        self,
        engine: SimulationEngine,
        node: "Node",
        link: "PointToPointLink",
        address: ipaddress.IPv4Interface,
        queue_size: int,
    ) -> None:
        super().__init__(f"link{link.id}:n{node.id}")
        self.engine = engine
        self.node = node
        self.link = link
        self.address = address
        self.queue_size = queue_size
        self.queue: Deque[Packet] = deque()
        self.busy = False
        self.peer: Optional["PointToPointDevice"] = None
        self.packets_sent = 0
        self.bytes_sent = 0
        self.packets_dropped = 0

    def send(self, packet: Packet) -> bool:
        """Queue a packet for transmission to the peer.

        Args:
            packet: The packet to send.

        Returns:
            False if the queue was full and the packet was dropped.
        """
        if len(self.queue) >= self.queue_size:
            self.packets_dropped += 1
            self.emit(TraceEventKind.DROP, packet.wire_size, "queue-full")
            return False
        self.emit(TraceEventKind.ENQUEUE, packet.wire_size)
        self.queue.append(packet)
        if not self.busy:
            self._start_transmission()
        return True

    def _start_transmission(self) -> None:
        packet = self.queue.popleft()
        self.busy = True
        self.emit(TraceEventKind.TRANSMIT, packet.wire_size)
        delay = self.link.calculate_transmission_delay(packet.wire_size)
        self.engine.schedule_in(delay, self._transmission_complete, packet)

    def _transmission_complete(self, packet: Packet) -> None:
        self.busy = False
        self.packets_sent += 1
        self.bytes_sent += packet.wire_size
        self.engine.schedule_in(self.link.propagation_delay, self.peer.receive, packet)
        if self.queue:
            self._start_transmission()

    def receive(self, packet: Packet) -> None:
        """Hand a packet that crossed the link to the owning node."""
        self.emit(TraceEventKind.RECEIVE, packet.wire_size)
        packet.record_hop()
        self.node.receive(packet, self)

    def __repr__(self) -> str:
        return f"PointToPointDevice({self.trace_id}, {self.address})"


class PointToPointLink:
    """Represents a full-duplex link between two nodes.

    Attributes:
        id: Index of the link in its topology.
        capacity: Data rate in bits per second, per direction.
        propagation_delay: Propagation delay in seconds.
        devices: The devices at both ends, in (left, right) order.
    """

    def __init__(
        self,
        engine: SimulationEngine,
        link_id: int,
        nodes: Tuple["Node", "Node"],
        addresses: Tuple[ipaddress.IPv4Interface, ipaddress.IPv4Interface],
        capacity: float,
        propagation_delay: float,
        queue_size: int = 100,
    ) -> None:
        """Initialize a point-to-point link and install its devices.

        Args:
            engine: Simulation engine.
            link_id: Index of the link.
            nodes: The two endpoint nodes.
            addresses: Interfaces assigned to the two ends.
            capacity: Link capacity in bits per second.
            propagation_delay: Propagation delay in seconds.
            queue_size: DropTail queue size of each device, in packets.
        """
        if nodes[0] is nodes[1]:
            raise ValueError("A point-to-point link needs two distinct nodes")
        self.id = link_id
        self.capacity = capacity
        self.propagation_delay = propagation_delay
        left = PointToPointDevice(engine, nodes[0], self, addresses[0], queue_size)
        right = PointToPointDevice(engine, nodes[1], self, addresses[1], queue_size)
        left.peer, right.peer = right, left
        self.devices = (left, right)
        nodes[0].add_device(left)
        nodes[1].add_device(right)

    @property
    def endpoints(self) -> Tuple[int, int]:
        return self.devices[0].node.id, self.devices[1].node.id

    def device_for(self, node_id: int) -> PointToPointDevice:
        """Return the device installed on ``node_id``."""
        for device in self.devices:
            if device.node.id == node_id:
                return device
        raise KeyError(f"Node {node_id} is not attached to link {self.id}")

    def calculate_transmission_delay(self, packet_size: int) -> float:
        """Calculate transmission delay based on packet size and link capacity.

        Args:
            packet_size: Size of the packet in bytes.

        Returns:
            Transmission delay in seconds.
        """
        return (packet_size * 8) / self.capacity

    def __repr__(self) -> str:
        source, target = self.endpoints
        return f"Link({source}<->{target}, {self.capacity/1000000:.1f}Mbps, {self.propagation_delay*1000:.1f}ms)"
