"""Test configuration and fixtures."""

import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402

from p2p_sim.core.config import ScenarioDescription  # noqa: E402
from p2p_sim.core.topology import LinkSpec  # noqa: E402
from p2p_sim.traffic.demand import FlowSpec  # noqa: E402


def small_chain(trace_output_path=None, **overrides) -> ScenarioDescription:
    """Three nodes, one 8 packet/s flow from n2 into n0 between t=1s and t=2s."""
    fields = dict(
        node_count=3,
        link_params=[LinkSpec(data_rate=1_000_000, delay=0.002)],
        routing_activation_time=0.5,
        flows=[
            FlowSpec(
                source=2,
                destination="10.1.1.1",
                rate=13_440,
                packet_size=210,
                start=1.0,
                stop=2.0,
            )
        ],
        run_duration=3.0,
        trace_output_path=trace_output_path,
        id="small-chain",
    )
    fields.update(overrides)
    return ScenarioDescription(**fields)


@pytest.fixture
def small_description():
    """In-memory three-node scenario."""
    return small_chain()


@pytest.fixture
def make_description():
    """Factory for variants of the three-node scenario."""
    return small_chain


@pytest.fixture
def small_scenario_yaml(tmp_path):
    """YAML file describing the three-node scenario."""
    path = tmp_path / "small.yaml"
    path.write_text(
        "\n".join(
            [
                "id: small-chain",
                "node_count: 3",
                "link_params:",
                "  - {bandwidth: 1Mbps, delay: 2ms}",
                "routing_activation_time: 0.5",
                "run_duration: 3.0",
                "trace_output_path: out/small.tr",
                "flows:",
                "  - {src: 2, dst: 10.1.1.1, rate: 13440bps, start: 1.0, stop: 2.0}",
                "",
            ]
        )
    )
    return path
