"""Traffic applications installed on nodes.

OnOffSource sends UDP packets to a destination address and port while it is
running; PacketSink receives them on a bound port. Both are started and
stopped by events scheduled on the engine.
"""

import ipaddress
import itertools
import logging
from typing import Callable, Dict, Iterator, Set

from p2p_sim.core.engine import SimulationEngine
from p2p_sim.core.node import Node
from p2p_sim.core.packet import Packet
from p2p_sim.core.trace import TraceEventKind, TraceSource

logger = logging.getLogger(__name__)


class OnOffSource:
    """Traffic source bound to an origin node.

    Attributes:
        engine: Simulation engine.
        node: Origin node.
        flow_id: Index of the flow in its demand.
        destination: Destination address.
        port: Destination UDP port.
        packet_size: Payload size in bytes.
        interval: Function returning the delay until the next packet.
        stop_time: Time after which no packet is sent.
        running: Whether the source is between start and stop.
        packets_sent: Number of packets handed to the origin node.
    """

    def __init__(
        self,
        engine: SimulationEngine,
        node: Node,
        flow_id: int,
        destination: ipaddress.IPv4Address,
        port: int,
        packet_size: int,
        interval: Callable[[], float],
        stop_time: float,
        packet_ids: Iterator[int],
    ) -> None:
        self.engine = engine
        self.node = node
        self.flow_id = flow_id
        self.destination = destination
        self.port = port
        self.packet_size = packet_size
        self.interval = interval
        self.stop_time = stop_time
        self.packet_ids = packet_ids
        self.running = False
        self.packets_sent = 0

    def start(self) -> None:
        self.running = True
        logger.debug("flow%d started on %r", self.flow_id, self.node)
        self._send()

    def stop(self) -> None:
        self.running = False
        logger.debug("flow%d stopped after %d packets", self.flow_id, self.packets_sent)

    def _send(self) -> None:
        if not self.running or self.engine.now >= self.stop_time:
            return
        packet = Packet(
            id=next(self.packet_ids),
            destination=self.destination,
            port=self.port,
            size=self.packet_size,
            flow_id=self.flow_id,
            creation_time=self.engine.now,
        )
        self.packets_sent += 1
        self.node.send(packet)
        delay = self.interval()
        if self.engine.now + delay < self.stop_time:
            self.engine.schedule_in(delay, self._send)


class FlowReceiver(TraceSource):
    """Per-flow view of a sink, so receptions are traced under ``flow<k>``."""

    def __init__(self, flow_id: int) -> None:
        super().__init__(f"flow{flow_id}")
        self.flow_id = flow_id
        self.packets_received = 0
        self.bytes_received = 0

    def record(self, packet: Packet) -> None:
        self.packets_received += 1
        self.bytes_received += packet.size
        self.emit(TraceEventKind.RECEIVE, packet.size)


class PacketSink:
    """UDP sink bound to one port of one node.

    Several flows may share a sink; each has its own FlowReceiver.

    Attributes:
        node: Node the sink is bound to.
        port: Bound UDP port.
        start_time: Time the sink starts accepting packets.
        stop_time: Time the sink stops accepting packets.
        receivers: Per-flow receivers, keyed by flow id.
        listening: Whether the sink is between start and stop.
    """

    def __init__(self, node: Node, port: int, start_time: float, stop_time: float) -> None:
        self.node = node
        self.port = port
        self.start_time = start_time
        self.stop_time = stop_time
        self.receivers: Dict[int, FlowReceiver] = {}
        self.listening = False
        node.bind(port, self)

    @property
    def flow_ids(self) -> Set[int]:
        return set(self.receivers)

    @property
    def packets_received(self) -> int:
        return sum(receiver.packets_received for receiver in self.receivers.values())

    def add_flow(self, flow_id: int, start_time: float, stop_time: float) -> FlowReceiver:
        """Attach one more flow, widening the listening window if needed."""
        self.start_time = min(self.start_time, start_time)
        self.stop_time = max(self.stop_time, stop_time)
        receiver = self.receivers.setdefault(flow_id, FlowReceiver(flow_id))
        return receiver

    def start(self) -> None:
        self.listening = True

    def stop(self) -> None:
        self.listening = False

    def handle(self, packet: Packet) -> None:
        """Accept a packet delivered by the node on the bound port."""
        receiver = self.receivers.get(packet.flow_id)
        if receiver is None:
            self.node.drop(packet, "unknown-flow")
        elif not self.listening:
            self.node.drop(packet, "port-closed")
        else:
            receiver.record(packet)

    def __repr__(self) -> str:
        return f"PacketSink(n{self.node.id}:{self.port}, flows={sorted(self.receivers)})"


def packet_id_counter() -> Iterator[int]:
    """Packet ids for one scenario, starting at 1."""
    return itertools.count(1)
