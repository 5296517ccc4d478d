"""Scenario configuration.

SimulationDefaults holds the values applied when a scenario leaves something
unspecified (packet size, data rate, port, queue size...). It is passed
explicitly to the builder; nothing is set process-wide.

ScenarioDescription is the declarative input of one run. It can be created
directly, from a mapping, or from a YAML file.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from p2p_sim.core.enums import TrafficPattern
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.topology import LinkSpec
from p2p_sim.traffic.demand import FlowSpec

logger = logging.getLogger(__name__)

_RATE_UNITS = {
    "bps": 1.0,
    "b/s": 1.0,
    "kbps": 1e3,
    "kb/s": 1e3,
    "mbps": 1e6,
    "mb/s": 1e6,
    "gbps": 1e9,
    "gb/s": 1e9,
}
_TIME_UNITS = {"s": 1.0, "ms": 1e-3, "us": 1e-6, "ns": 1e-9}
_QUANTITY = re.compile(r"^\s*([0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*([A-Za-z/]*)\s*$")


def _parse_quantity(value: Union[str, int, float], units: Dict[str, float], field_name: str) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(field_name, f"expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _QUANTITY.match(str(value))
    if match is None:
        raise ConfigurationError(field_name, f"cannot parse {value!r}")
    number, unit = match.groups()
    if not unit:
        return float(number)
    scale = units.get(unit.lower())
    if scale is None:
        raise ConfigurationError(
            field_name, f"unknown unit {unit!r}, expected one of {', '.join(units)}"
        )
    return float(number) * scale


def parse_data_rate(value: Union[str, int, float], field_name: str = "rate") -> float:
    """Parse ``"50000kb/s"``, ``"5Mbps"`` or a bare number into bits per second."""
    return _parse_quantity(value, _RATE_UNITS, field_name)


def parse_time(value: Union[str, int, float], field_name: str = "time") -> float:
    """Parse ``"3ms"``, ``"1.5s"`` or a bare number into seconds."""
    return _parse_quantity(value, _TIME_UNITS, field_name)


@dataclass(frozen=True)
class SimulationDefaults:
    """Default values threaded through scenario construction.

    Attributes:
        packet_size: Payload bytes of flows that do not set one.
        data_rate: Sending rate (bit/s) of flows that do not set one.
        port: Destination UDP port of flows that do not set one.
        queue_size: DropTail queue size of every device, in packets.
        address_base: Block the per-link subnets are carved from.
        subnet_prefix: Prefix length of the per-link subnets.
        routing_protocol: Protocol used when the scenario does not name one.
        seed: Seed used when the scenario does not set one.
    """

    packet_size: int = 210
    data_rate: float = 50_000_000.0
    port: int = 9
    queue_size: int = 100
    address_base: str = "10.1.0.0/16"
    subnet_prefix: int = 24
    routing_protocol: str = "olsr"
    seed: int = 42

    def with_overrides(self, **overrides: Any) -> "SimulationDefaults":
        """Copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


@dataclass
class ScenarioDescription:
    """Declarative description of one scenario run.

    Attributes:
        node_count: Number of nodes in the chain.
        link_params: One LinkSpec for every link, or exactly one per link.
        routing_activation_time: Time at which routing starts on every node.
        flows: Synthetic flows.
        run_duration: Stop time of the run in seconds.
        trace_output_path: Trace file, or None to keep records in memory.
        routing_protocol: Routing protocol name; None uses the default.
        seed: Seed for random traffic patterns; None uses the default.
    """

    node_count: int
    link_params: List[LinkSpec]
    routing_activation_time: float
    flows: List[FlowSpec]
    run_duration: float
    trace_output_path: Optional[Path] = None
    routing_protocol: Optional[str] = None
    seed: Optional[int] = None
    id: str = field(default="scenario")


def _require(data: Mapping[str, Any], key: str, prefix: str = "") -> Any:
    if key not in data:
        raise ConfigurationError(f"{prefix}{key}", "is required")
    return data[key]


def _integer(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigurationError(field_name, f"expected an integer, got {value!r}")
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(field_name, f"expected an integer, got {value!r}") from None


def _flow_from_dict(
    data: Mapping[str, Any], index: int, defaults: SimulationDefaults
) -> FlowSpec:
    prefix = f"flows[{index}]."
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"flows[{index}]", "must be a mapping")
    pattern = data.get("pattern", TrafficPattern.CONSTANT.value)
    try:
        pattern = TrafficPattern(pattern)
    except ValueError:
        raise ConfigurationError(
            f"{prefix}pattern",
            f"unknown pattern {pattern!r}, expected one of {', '.join(p.value for p in TrafficPattern)}",
        ) from None
    return FlowSpec(
        source=_integer(_require(data, "src", prefix), f"{prefix}source"),
        destination=str(_require(data, "dst", prefix)),
        rate=parse_data_rate(data.get("rate", defaults.data_rate), f"{prefix}rate"),
        packet_size=_integer(data.get("packet_size", defaults.packet_size), f"{prefix}packet_size"),
        start=parse_time(_require(data, "start", prefix), f"{prefix}start"),
        stop=parse_time(_require(data, "stop", prefix), f"{prefix}stop"),
        port=_integer(data.get("port", defaults.port), f"{prefix}port"),
        pattern=pattern,
    )


def scenario_from_dict(
    data: Mapping[str, Any], defaults: Optional[SimulationDefaults] = None
) -> ScenarioDescription:
    """Build a ScenarioDescription from a plain mapping.

    Args:
        data: Mapping with the keys documented on ScenarioDescription; links
            use ``bandwidth``/``delay`` and flows ``src``/``dst`` keys.
        defaults: Values for flow fields the mapping leaves out.

    Returns:
        The scenario description.

    Raises:
        ConfigurationError: If a key is missing or a value cannot be parsed.
    """
    defaults = defaults or SimulationDefaults()
    if not isinstance(data, Mapping):
        raise ConfigurationError("scenario", "must be a mapping")

    raw_links = _require(data, "link_params")
    if isinstance(raw_links, Mapping):
        raw_links = [raw_links]
    if not isinstance(raw_links, list):
        raise ConfigurationError("link_params", "must be a list of mappings")
    links = []
    for index, link in enumerate(raw_links):
        prefix = f"link_params[{index}]."
        if not isinstance(link, Mapping):
            raise ConfigurationError(f"link_params[{index}]", "must be a mapping")
        links.append(
            LinkSpec(
                data_rate=parse_data_rate(_require(link, "bandwidth", prefix), f"{prefix}bandwidth"),
                delay=parse_time(_require(link, "delay", prefix), f"{prefix}delay"),
            )
        )

    raw_flows = data.get("flows") or []
    if not isinstance(raw_flows, list):
        raise ConfigurationError("flows", "must be a list of mappings")
    flows = [_flow_from_dict(flow, index, defaults) for index, flow in enumerate(raw_flows)]

    trace_path = data.get("trace_output_path")
    seed = data.get("seed")
    return ScenarioDescription(
        node_count=_integer(_require(data, "node_count"), "node_count"),
        link_params=links,
        routing_activation_time=parse_time(
            _require(data, "routing_activation_time"), "routing_activation_time"
        ),
        flows=flows,
        run_duration=parse_time(_require(data, "run_duration"), "run_duration"),
        trace_output_path=Path(trace_path) if trace_path else None,
        routing_protocol=data.get("routing_protocol"),
        seed=_integer(seed, "seed") if seed is not None else None,
        id=str(data.get("id", "scenario")),
    )


def load_scenario(
    path: Union[str, Path], defaults: Optional[SimulationDefaults] = None
) -> ScenarioDescription:
    """Load a scenario description from a YAML file.

    A relative ``trace_output_path`` is resolved against the file's directory.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigurationError("scenario", f"invalid YAML in {path}: {exc}") from exc
    description = scenario_from_dict(data, defaults)
    trace_path = description.trace_output_path
    if trace_path is not None and not trace_path.is_absolute():
        description.trace_output_path = path.parent / trace_path
    logger.info("Loaded scenario %s from %s", description.id, path)
    return description
