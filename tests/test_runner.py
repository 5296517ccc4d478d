"""Tests for the run lifecycle."""

import pytest

from p2p_sim.core.enums import RunState
from p2p_sim.core.errors import ConfigurationError
from p2p_sim.core.runner import RunResult, ScenarioRunner, run_scenario
from p2p_sim.core.scenario import ScenarioBuilder


class TestScenarioRunner:
    """BUILT -> RUNNING -> STOPPED, exactly once."""

    def test_run_result(self, small_description):
        scenario = ScenarioBuilder(small_description).build()
        runner = ScenarioRunner(scenario)
        assert runner.state is RunState.BUILT

        result = runner.run()

        assert isinstance(result, RunResult)
        assert runner.state is RunState.STOPPED
        assert runner.result is result
        assert result.stop_time == 3.0
        assert result.records_written == scenario.trace_sink.records_written > 0
        # Every flow stopped at t=2, well before the stop time.
        assert result.drained

    def test_events_left_at_the_stop_time(self, make_description):
        scenario = ScenarioBuilder(make_description(run_duration=1.5)).build()
        result = ScenarioRunner(scenario).run()
        assert result.stop_time == 1.5
        assert not result.drained

    def test_explicit_duration(self, small_description):
        scenario = ScenarioBuilder(small_description).build()
        result = ScenarioRunner(scenario).run(duration=1.25)
        assert result.stop_time == 1.25

    def test_teardown_after_run(self, small_description):
        scenario = ScenarioBuilder(small_description).build()
        ScenarioRunner(scenario).run()

        assert scenario.engine.env is None
        assert scenario.engine.now == 3.0
        assert scenario.trace_sink.closed
        with pytest.raises(RuntimeError):
            scenario.engine.schedule_in(1.0, lambda: None)

    def test_cannot_run_twice(self, small_description):
        runner = ScenarioRunner(ScenarioBuilder(small_description).build())
        runner.run()
        with pytest.raises(RuntimeError):
            runner.run()

    def test_non_positive_duration(self, small_description):
        runner = ScenarioRunner(ScenarioBuilder(small_description).build())
        with pytest.raises(ConfigurationError) as exc_info:
            runner.run(duration=0)
        assert exc_info.value.field == "run_duration"
        assert runner.state is RunState.BUILT

    def test_routing_activation_after_the_stop_time(self, small_description):
        scenario = ScenarioBuilder(small_description).build()
        runner = ScenarioRunner(scenario)

        # Routing activates at t=0.5.
        with pytest.raises(ConfigurationError) as exc_info:
            runner.run(duration=0.25)

        assert exc_info.value.field == "run_duration"
        assert runner.state is RunState.BUILT
        assert not scenario.trace_sink.closed
        assert not any(node.routing.active for node in scenario.topology.nodes)

    def test_duration_equal_to_activation(self, small_description):
        scenario = ScenarioBuilder(small_description).build()
        result = ScenarioRunner(scenario).run(duration=0.5)
        assert result.stop_time == 0.5

    def test_closed_scenario_cannot_run(self, small_description):
        scenario = ScenarioBuilder(small_description).build()
        scenario.close()
        runner = ScenarioRunner(scenario)
        with pytest.raises(RuntimeError):
            runner.run()
        assert runner.state is RunState.BUILT

    def test_engine_failure_still_closes_the_trace(self, make_description, tmp_path, monkeypatch):
        path = tmp_path / "failed.tr"
        scenario = ScenarioBuilder(make_description(path)).build()

        def explode(time):
            raise RuntimeError("engine aborted")

        monkeypatch.setattr(scenario.engine, "run_until", explode)
        runner = ScenarioRunner(scenario)
        with pytest.raises(RuntimeError, match="engine aborted"):
            runner.run()

        assert scenario.trace_sink.closed
        assert scenario.engine.env is None
        assert runner.state is RunState.RUNNING
        assert path.exists()


def test_run_scenario(small_description):
    scenario = run_scenario(small_description)
    assert scenario.trace_sink.closed
    assert scenario.receivers[0].packets_received == 8
