"""Tests for trace records and the trace sink."""

import pytest

from p2p_sim.core import scenario as scenario_module
from p2p_sim.core.trace import (
    TraceEventKind,
    TraceRecord,
    TraceSink,
    TraceSource,
    iter_trace,
    read_trace,
)


class TestTraceRecord:
    """Text serialization, one record per line."""

    def test_line_format(self):
        record = TraceRecord(1.5, "link0:n1", TraceEventKind.RECEIVE, 240)
        assert record.to_line() == "r 1.500000000 link0:n1 240"

    def test_line_with_note(self):
        record = TraceRecord(2.0, "n3", TraceEventKind.DROP, 240, "no-route")
        assert record.to_line() == "d 2.000000000 n3 240 no-route"

    def test_parse_line(self):
        record = TraceRecord.from_line("- 0.000038400 link3:n4 240\n")
        assert record == TraceRecord(0.0000384, "link3:n4", TraceEventKind.TRANSMIT, 240)

    @pytest.mark.parametrize("line", ["", "r 1.0 n0", "x 1.0 n0 10", "r 1.0 n0 10 a b"])
    def test_malformed_line(self, line):
        with pytest.raises(ValueError):
            TraceRecord.from_line(line)


class TestTraceSink:
    """Append-only, ordered, flushed on close."""

    def test_in_memory_records(self):
        clock = [0.0]
        sink = TraceSink()
        source = TraceSource("link0:n0")
        assert sink.attach([source], lambda: clock[0]) == 1

        source.emit(TraceEventKind.ENQUEUE, 240)
        clock[0] = 0.5
        source.emit(TraceEventKind.TRANSMIT, 240)

        assert [r.to_line() for r in sink.records] == [
            "+ 0.000000000 link0:n0 240",
            "- 0.500000000 link0:n0 240",
        ]
        assert sink.records_written == 2

    def test_timestamps_never_go_backwards(self):
        clock = [1.0]
        sink = TraceSink()
        sink.attach([], lambda: clock[0])
        sink.record(TraceEventKind.ENQUEUE, "n0", 10)
        clock[0] = 0.5
        with pytest.raises(RuntimeError):
            sink.record(TraceEventKind.ENQUEUE, "n0", 10)

    def test_equal_timestamps_are_allowed(self):
        sink = TraceSink()
        sink.attach([], lambda: 1.0)
        sink.record(TraceEventKind.ENQUEUE, "n0", 10)
        sink.record(TraceEventKind.TRANSMIT, "n0", 10)
        assert sink.records_written == 2

    def test_writes_file_and_creates_directories(self, tmp_path):
        path = tmp_path / "nested" / "run.tr"
        with TraceSink(path) as sink:
            sink.attach([], lambda: 0.25)
            sink.record(TraceEventKind.DROP, "link1:n2", 240, "queue-full")

        assert path.read_text() == "d 0.250000000 link1:n2 240 queue-full\n"
        assert sink.records == []
        assert read_trace(path) == [
            TraceRecord(0.25, "link1:n2", TraceEventKind.DROP, 240, "queue-full")
        ]

    def test_keep_records_with_a_file(self, tmp_path):
        sink = TraceSink(tmp_path / "run.tr", keep_records=True)
        sink.record(TraceEventKind.RECEIVE, "flow0", 210)
        sink.close()
        assert len(sink.records) == 1

    def test_close_is_idempotent(self, tmp_path):
        sink = TraceSink(tmp_path / "run.tr")
        sink.close()
        sink.close()
        assert sink.closed

    def test_closed_sink_rejects_records(self):
        sink = TraceSink()
        sink.close()
        with pytest.raises(RuntimeError):
            sink.record(TraceEventKind.RECEIVE, "flow0", 210)

    def test_iter_trace_skips_blank_lines(self, tmp_path):
        path = tmp_path / "run.tr"
        path.write_text("+ 0.000000000 link0:n0 240\n\nr 0.003038400 link0:n1 240\n")
        assert [record.kind for record in iter_trace(path)] == [
            TraceEventKind.ENQUEUE,
            TraceEventKind.RECEIVE,
        ]


class TestTraceOnAbortedBuild:
    """A build failing after the sink is opened still closes the output."""

    def test_sink_is_closed(self, tmp_path, monkeypatch, make_description):
        opened = []

        class RecordingSink(TraceSink):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                opened.append(self)

        def broken_chain(*args, **kwargs):
            raise RuntimeError("link setup failed")

        monkeypatch.setattr(scenario_module, "TraceSink", RecordingSink)
        monkeypatch.setattr(scenario_module, "build_chain", broken_chain)
        path = tmp_path / "aborted.tr"

        with pytest.raises(RuntimeError, match="link setup failed"):
            scenario_module.ScenarioBuilder(make_description(path)).build()

        assert len(opened) == 1
        assert opened[0].closed
        assert path.exists()
        assert path.read_text() == ""


class TestTraceOnAbandonedScenario:
    """A scenario built but never run still flushes and closes its trace."""

    def test_close(self, tmp_path, make_description):
        path = tmp_path / "abandoned.tr"
        scenario = scenario_module.ScenarioBuilder(make_description(path)).build()
        scenario.topology.nodes[1].emit(TraceEventKind.DROP, 240, "no-route")
        assert not scenario.closed

        scenario.close()
        scenario.close()

        assert scenario.trace_sink.closed
        assert scenario.engine.env is None
        assert [record.note for record in iter_trace(path)] == ["no-route"]

    def test_context_manager_on_error(self, tmp_path, make_description):
        path = tmp_path / "abandoned.tr"

        with pytest.raises(KeyError):
            with scenario_module.ScenarioBuilder(make_description(path)).build() as scenario:
                scenario.topology.nodes[1].emit(TraceEventKind.DROP, 240, "no-route")
                raise KeyError("caller failed before running")

        assert scenario.closed
        assert len(read_trace(path)) == 1
