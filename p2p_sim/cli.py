"""Command line entry point: run a scenario described in a YAML file."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from p2p_sim.core.config import SimulationDefaults, load_scenario, parse_data_rate
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.runner import ScenarioRunner
from p2p_sim.core.scenario import ScenarioBuilder
from p2p_sim.core.trace import iter_trace
from p2p_sim.utils.metrics import summarize_trace

logger = logging.getLogger("p2p_sim")


def configure_logging(level: str) -> None:
    """Configure the root handler and the package log level."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger("p2p_sim").setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="p2p-sim",
        description="Run a point-to-point network simulation scenario",
    )
    parser.add_argument("scenario", help="Scenario description (YAML)")
    parser.add_argument("--packet-size", type=int, help="Default payload size in bytes")
    parser.add_argument("--data-rate", help="Default flow rate, e.g. 50000kb/s")
    parser.add_argument("--queue-size", type=int, help="Device queue size in packets")
    parser.add_argument("--run-duration", type=float, help="Override the run duration (s)")
    parser.add_argument("--trace", help="Override the trace output path")
    parser.add_argument("--seed", type=int, help="Override the random seed")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI.

    Returns:
        Process exit code: 0 on success, 2 on configuration errors.
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        defaults = SimulationDefaults().with_overrides(
            packet_size=args.packet_size,
            data_rate=parse_data_rate(args.data_rate, "--data-rate") if args.data_rate else None,
            queue_size=args.queue_size,
        )
        description = load_scenario(args.scenario, defaults)
        if args.run_duration is not None:
            description.run_duration = args.run_duration
        if args.trace is not None:
            description.trace_output_path = Path(args.trace)
        if args.seed is not None:
            description.seed = args.seed

        scenario = ScenarioBuilder(description, defaults).build()
    except ConfigurationError as exc:
        logger.error("Invalid scenario: %s", exc)
        return 2
    except FileNotFoundError as exc:
        logger.error("Cannot read scenario: %s", exc)
        return 2

    result = ScenarioRunner(scenario).run()
    print(f"Stopped at t={result.stop_time:.3f}s, {result.records_written} trace records")

    trace_path = scenario.trace_sink.path
    if trace_path is None:
        records = scenario.trace_sink.records
    else:
        print(f"Trace written to {trace_path}")
        records = iter_trace(trace_path)
    metrics = summarize_trace(records, result.stop_time)
    for flow_id, stats in metrics["flows"].items():
        print(
            f"  flow{flow_id}: {int(stats['packets'])} packets, "
            f"{stats['throughput'] / 1000:.2f} kb/s"
        )
    print(f"  fairness index: {metrics['fairness']:.4f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
