"""Scenario execution.

ScenarioRunner drives the engine of a built scenario up to its stop time,
then tears the engine down and closes the trace. A scenario runs once:
BUILT -> RUNNING -> STOPPED.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from p2p_sim.core.config import ScenarioDescription, SimulationDefaults
from p2p_sim.core.enums import RunState
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.scenario import Scenario, ScenarioBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    """Outcome of a completed run.

    Attributes:
        stop_time: Simulated time at which the run stopped.
        drained: True if no event was left pending at the stop time.
        records_written: Number of trace records produced.
    """

    stop_time: float
    drained: bool
    records_written: int


class ScenarioRunner:
    """Runs one built scenario to completion."""

    def __init__(self, scenario: Scenario) -> None:
        self.scenario = scenario
        self.state = RunState.BUILT
        self.result: Optional[RunResult] = None

    def run(self, duration: Optional[float] = None) -> RunResult:
        """Process every event up to ``duration`` and shut down.

        Args:
            duration: Stop time in seconds; defaults to the scenario's
                run duration. Must not precede routing activation.

        Returns:
            The run result.

        Raises:
            ConfigurationError: If ``duration`` is not positive or falls
                before the routing activation time.
            RuntimeError: If the scenario already ran or was closed.
        """
        if self.state is not RunState.BUILT:
            raise RuntimeError(f"Scenario cannot run from state {self.state.value}")
        if self.scenario.closed:
            raise RuntimeError("Scenario was closed before it ran")
        if duration is None:
            duration = self.scenario.run_duration
        if not duration > 0:
            raise ConfigurationError("run_duration", f"must be positive, got {duration}")
        activation = self.scenario.description.routing_activation_time
        if duration < activation:
            raise ConfigurationError(
                "run_duration",
                f"{duration} is before the routing activation time {activation}",
            )

        engine = self.scenario.engine
        trace_sink = self.scenario.trace_sink
        self.state = RunState.RUNNING
        logger.info("Run simulation.")
        try:
            engine.run_until(duration)
            drained = not engine.has_pending_events()
        finally:
            self.scenario.close()

        self.state = RunState.STOPPED
        self.result = RunResult(
            stop_time=engine.now,
            drained=drained,
            records_written=trace_sink.records_written,
        )
        logger.info(
            "Done. Stopped at t=%.3fs with %d trace records.",
            self.result.stop_time,
            self.result.records_written,
        )
        return self.result


def run_scenario(
    description: ScenarioDescription,
    defaults: Optional[SimulationDefaults] = None,
) -> Scenario:
    """Build and run a scenario, returning it in the STOPPED state."""
    scenario = ScenarioBuilder(description, defaults).build()
    ScenarioRunner(scenario).run()
    return scenario
