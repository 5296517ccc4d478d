"""Tests for traffic generators, applications and demand installation."""

import ipaddress

import numpy as np
import pytest

from p2p_sim.core.engine import SimulationEngine
from p2p_sim.core.enums import TrafficPattern
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.node import Node
from p2p_sim.core.packet import Packet
from p2p_sim.core.topology import LinkSpec, build_chain, planned_address_owners
from p2p_sim.traffic.applications import PacketSink, packet_id_counter
from p2p_sim.traffic.demand import FlowSpec, TrafficDemand
from p2p_sim.traffic.generators import (
    bursty_traffic,
    constant_traffic,
    interval_function,
    packets_per_second,
    pareto_traffic,
    poisson_traffic,
)

LINK = LinkSpec(data_rate=1_000_000, delay=0.002)


def flow(source=2, destination="10.1.1.1", **overrides):
    fields = dict(
        source=source,
        destination=destination,
        rate=84_000,
        packet_size=210,
        start=1.0,
        stop=2.0,
    )
    fields.update(overrides)
    return FlowSpec(**fields)


class TestGenerators:
    """Interarrival functions."""

    def test_packets_per_second(self):
        assert packets_per_second(1680, 210) == 1.0

    def test_constant(self):
        interval = constant_traffic(100.0)
        assert [interval() for _ in range(3)] == [0.01, 0.01, 0.01]

    def test_poisson_is_reproducible(self):
        first = poisson_traffic(10.0, np.random.default_rng([42, 0]))
        second = poisson_traffic(10.0, np.random.default_rng([42, 0]))
        assert [first() for _ in range(5)] == [second() for _ in range(5)]

    def test_pareto_intervals_are_bounded_below(self):
        interval = pareto_traffic(10.0, np.random.default_rng(1), alpha=1.5)
        # Minimum interarrival is (alpha - 1) / (alpha * rate).
        assert min(interval() for _ in range(200)) >= 1 / 30 - 1e-12

    def test_bursty(self):
        interval = bursty_traffic(3, 0.1)
        assert [interval() for _ in range(6)] == pytest.approx([0.1, 0.1, 0.3, 0.1, 0.1, 0.3])

    def test_interval_function_constant_matches_rate(self):
        interval = interval_function(
            TrafficPattern.CONSTANT, 16_800, 210, np.random.default_rng(0)
        )
        assert interval() == pytest.approx(0.1)

    def test_interval_function_bursty_doubles_rate_inside_bursts(self):
        interval = interval_function(
            TrafficPattern.BURSTY, 16_800, 210, np.random.default_rng(0), burst_size=2
        )
        assert [interval(), interval()] == pytest.approx([0.05, 0.1])


class TestTrafficDemandValidation:
    """Errors name the offending flow field."""

    owners = planned_address_owners(3)

    @pytest.mark.parametrize(
        "spec, field",
        [
            (flow(source=5), "flows[0].source"),
            (flow(source=-1), "flows[0].source"),
            (flow(destination="10.9.9.9"), "flows[0].destination"),
            (flow(destination="not-an-address"), "flows[0].destination"),
            (flow(source=2, destination="10.1.2.2"), "flows[0].destination"),
            (flow(rate=0), "flows[0].rate"),
            (flow(packet_size=0), "flows[0].packet_size"),
            (flow(start=-1.0), "flows[0].start"),
            (flow(stop=1.0), "flows[0].stop"),
            (flow(port=0), "flows[0].port"),
            (flow(port=70000), "flows[0].port"),
        ],
    )
    def test_invalid_flow(self, spec, field):
        with pytest.raises(ConfigurationError) as exc_info:
            TrafficDemand([spec]).validate(3, self.owners)
        assert exc_info.value.field == field

    def test_index_of_the_failing_flow(self):
        demand = TrafficDemand([flow(), flow(destination="10.1.7.1")])
        with pytest.raises(ConfigurationError) as exc_info:
            demand.validate(3, self.owners)
        assert exc_info.value.field == "flows[1].destination"

    def test_valid_flows(self):
        TrafficDemand([flow(), flow(source=0, destination="10.1.2.2")]).validate(3, self.owners)


class TestTrafficDemandInstall:
    """Sources per flow, sinks per (node, port)."""

    def install(self, flows, node_count=4):
        engine = SimulationEngine()
        topology = build_chain(engine, node_count, LINK)
        demand = TrafficDemand(flows)
        receivers = demand.install(topology, engine, packet_id_counter())
        return engine, topology, demand, receivers

    @pytest.mark.parametrize("flow_count", [1, 2, 3])
    def test_shared_destination_gets_one_sink(self, flow_count):
        flows = [flow(source=source) for source in range(1, flow_count + 1)]
        _, topology, demand, receivers = self.install(flows)

        assert list(demand.sinks) == [(0, 9)]
        sink = demand.sinks[(0, 9)]
        assert sink.flow_ids == set(range(flow_count))
        assert topology.nodes[0].ports == {9: sink}
        assert len(demand.sources) == flow_count
        assert [receiver.trace_id for receiver in receivers] == [
            f"flow{i}" for i in range(flow_count)
        ]

    def test_distinct_ports_get_distinct_sinks(self):
        _, topology, demand, _ = self.install([flow(port=9), flow(source=3, port=10)])
        assert sorted(demand.sinks) == [(0, 9), (0, 10)]
        assert sorted(topology.nodes[0].ports) == [9, 10]

    def test_shared_sink_listens_over_every_flow(self):
        flows = [
            flow(source=1, start=2.0, stop=5.0),
            flow(source=2, start=0.5, stop=3.0),
            flow(source=3, start=1.0, stop=7.0),
        ]
        _, _, demand, _ = self.install(flows)
        sink = demand.sinks[(0, 9)]
        assert (sink.start_time, sink.stop_time) == (0.5, 7.0)

    def test_start_and_stop_are_scheduled(self):
        engine, _, demand, _ = self.install([flow()])
        assert engine.has_pending_events()
        assert not demand.sources[0].running

    def test_unknown_destination_fails_before_scheduling(self):
        engine = SimulationEngine()
        topology = build_chain(engine, 3, LINK)
        with pytest.raises(ConfigurationError):
            TrafficDemand([flow(destination="10.2.0.1")]).install(
                topology, engine, packet_id_counter()
            )
        assert not engine.has_pending_events()
        assert topology.nodes[0].ports == {}


class TestOnOffSource:
    """Sources send from start until stop."""

    def test_constant_rate_packet_count(self):
        engine = SimulationEngine()
        topology = build_chain(engine, 2, LINK)
        demand = TrafficDemand([flow(source=1, rate=1680, start=1.0, stop=4.0)])
        demand.install(topology, engine, packet_id_counter())

        engine.run_until(10.0)

        # Sent at t=1, 2 and 3; no routing, so all are dropped at the origin.
        assert demand.sources[0].packets_sent == 3
        assert topology.nodes[1].packets_dropped == 3


class TestPacketSink:
    """Sink acceptance rules."""

    def make_packet(self, flow_id):
        return Packet(
            id=1,
            destination=ipaddress.IPv4Address("10.1.1.1"),
            port=9,
            size=100,
            flow_id=flow_id,
        )

    def test_records_only_while_listening(self):
        node = Node(SimulationEngine(), 0)
        sink = PacketSink(node, 9, 0.0, 1.0)
        receiver = sink.add_flow(0, 0.0, 1.0)

        sink.handle(self.make_packet(0))
        assert node.packets_dropped == 1

        sink.start()
        sink.handle(self.make_packet(0))
        assert receiver.packets_received == 1
        assert receiver.bytes_received == 100
        assert sink.packets_received == 1

    def test_unknown_flow_is_dropped(self):
        node = Node(SimulationEngine(), 0)
        sink = PacketSink(node, 9, 0.0, 1.0)
        sink.start()
        sink.handle(self.make_packet(99))
        assert node.packets_dropped == 1

    def test_binding_an_occupied_port(self):
        node = Node(SimulationEngine(), 0)
        PacketSink(node, 9, 0.0, 1.0)
        with pytest.raises(ValueError):
            PacketSink(node, 9, 0.0, 1.0)
