"""Packet class for network simulation.

This module defines the Packet class, which represents a UDP datagram
traveling through the simulated point-to-point network.
"""

from dataclasses import dataclass
from ipaddress import IPv4Address
from typing import Optional

# IPv4 (20) + UDP (8) headers.
UDP_IP_OVERHEAD = 28
# PPP framing added on point-to-point devices.
PPP_HEADER = 2
DEFAULT_TTL = 64


@dataclass
class Packet:
    """Represents a network packet.

    Attributes:
        id: Identifier, unique within one scenario.
        destination: Destination IPv4 address.
        port: Destination UDP port.
        size: Payload size in bytes.
        flow_id: Index of the flow that generated the packet.
        creation_time: Time when packet was created.
        source: Source address, filled in when the packet leaves its origin.
        ttl: Remaining hop budget.
        hops: Number of links traversed so far.
    """

    id: int
    destination: IPv4Address
    port: int
    size: int
    flow_id: int
    creation_time: float = 0.0
    source: Optional[IPv4Address] = None
    ttl: int = DEFAULT_TTL
    hops: int = 0

    @property
    def wire_size(self) -> int:
        """Bytes occupied on a point-to-point link."""
        return self.size + UDP_IP_OVERHEAD + PPP_HEADER

    def record_hop(self) -> None:
        self.hops += 1
