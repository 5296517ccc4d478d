"""Tests for the p2p-sim command line."""

import pytest

from p2p_sim.cli import build_parser, main


class TestParser:
    """Override-of-defaults flags only."""

    def test_defaults(self):
        args = build_parser().parse_args(["scenario.yaml"])
        assert args.scenario == "scenario.yaml"
        assert args.log_level == "WARNING"
        assert args.packet_size is None

    def test_requires_a_scenario(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    """Exit codes and summary output."""

    def test_runs_the_scenario(self, small_scenario_yaml, capsys):
        assert main([str(small_scenario_yaml)]) == 0

        out = capsys.readouterr().out
        assert "Stopped at t=3.000s" in out
        assert "flow0: 8 packets" in out
        assert (small_scenario_yaml.parent / "out" / "small.tr").exists()

    def test_overrides(self, small_scenario_yaml, tmp_path, capsys):
        trace = tmp_path / "override.tr"
        code = main(
            [
                str(small_scenario_yaml),
                "--run-duration",
                "2.5",
                "--trace",
                str(trace),
                "--packet-size",
                "100",
                "--seed",
                "3",
            ]
        )

        assert code == 0
        assert trace.exists()
        out = capsys.readouterr().out
        assert "Stopped at t=2.500s" in out
        assert f"Trace written to {trace}" in out

    def test_invalid_scenario(self, small_scenario_yaml):
        assert main([str(small_scenario_yaml), "--run-duration", "-1"]) == 2

    def test_invalid_data_rate(self, small_scenario_yaml):
        assert main([str(small_scenario_yaml), "--data-rate", "fast"]) == 2

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / "missing.yaml")]) == 2
