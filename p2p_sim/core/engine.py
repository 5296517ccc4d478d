"""Discrete-event engine facade.

This module wraps a SimPy environment behind the three primitives the
scenario layer relies on: scheduling an action at a point in simulated time,
running until a stop time, and tearing the environment down. Event ordering
(timestamp, then insertion order) is entirely SimPy's.
"""

import logging
from typing import Any, Callable

import simpy

logger = logging.getLogger(__name__)


class SimulationEngine:
    """Thin wrapper around ``simpy.Environment``.

    Attributes:
        env: SimPy environment, or None once torn down.
        pending_actions: Number of scheduled actions that have not fired.
    """

    def __init__(self, initial_time: float = 0.0) -> None:
        """Initialize the engine.

        Args:
            initial_time: Simulated time at which the timeline starts.
        """
        self.env = simpy.Environment(initial_time=initial_time)
        self.stop_time: float = initial_time
        self.pending_actions = 0

    @property
    def now(self) -> float:
        """Current simulated time in seconds."""
        if self.env is None:
            return self.stop_time
        return self.env.now

    def _require_env(self) -> simpy.Environment:
        if self.env is None:
            raise RuntimeError("Engine has been torn down")
        return self.env

    def schedule(
        self, time: float, action: Callable[..., Any], *args: Any
    ) -> simpy.events.Timeout:
        """Run ``action(*args)`` at absolute simulated time ``time``.

        Args:
            time: Absolute time of the event in seconds.
            action: Callable to invoke when the event fires.
            *args: Positional arguments passed to the action.

        Returns:
            The underlying SimPy timeout event.
        """
        env = self._require_env()
        if time < env.now:
            raise ValueError(f"Cannot schedule at {time}, current time is {env.now}")
        return self.schedule_in(time - env.now, action, *args)

    def schedule_in(
        self, delay: float, action: Callable[..., Any], *args: Any
    ) -> simpy.events.Timeout:
        """Run ``action(*args)`` after ``delay`` seconds of simulated time."""
        env = self._require_env()
        event = env.timeout(delay)
        self.pending_actions += 1

        def fire(_event: simpy.events.Event) -> None:
            self.pending_actions -= 1
            action(*args)

        event.callbacks.append(fire)
        return event

    def has_pending_events(self) -> bool:
        """Whether any scheduled action has not fired yet.

        Only actions scheduled through this engine are counted, never the
        stop event that ``env.run(until=...)`` may leave queued.
        """
        self._require_env()
        return self.pending_actions > 0

    def run_until(self, time: float) -> None:
        """Process all scheduled events up to ``time``.

        Args:
            time: Absolute stop time in seconds.
        """
        env = self._require_env()
        logger.debug("Running engine from %.6f until %.6f", env.now, time)
        env.run(until=time)
        self.stop_time = env.now

    def teardown(self) -> None:
        """Release the environment and every event still queued in it."""
        if self.env is None:
            return
        self.stop_time = self.env.now
        self.env = None
        logger.debug("Engine torn down at %.6f", self.stop_time)
