"""Trace recording for scenario runs.

Devices, nodes and packet sinks are trace sources: they expose hooks that
fire on enqueue, transmit, receive and drop. A TraceSink subscribes to those
hooks and appends one TraceRecord per event to a text file, one record per
line, in the order the engine processes the events.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, List, Optional, TextIO, Union

logger = logging.getLogger(__name__)


class TraceEventKind(Enum):
    """Observable event kinds, written with their ns-style ASCII symbol."""

    ENQUEUE = "+"
    TRANSMIT = "-"
    RECEIVE = "r"
    DROP = "d"


@dataclass(frozen=True)
class TraceRecord:
    """One observable event.

    Attributes:
        timestamp: Simulated time of the event in seconds.
        component: Identifier of the link end, node or flow that observed it.
        kind: Event kind.
        byte_count: Bytes involved (on-wire size for links, payload for flows).
        note: Optional detail, e.g. the reason of a drop.
    """

    timestamp: float
    component: str
    kind: TraceEventKind
    byte_count: int
    note: Optional[str] = None

    def to_line(self) -> str:
        line = f"{self.kind.value} {self.timestamp:.9f} {self.component} {self.byte_count}"
        if self.note:
            line += f" {self.note}"
        return line

    @classmethod
    def from_line(cls, line: str) -> "TraceRecord":
        """Parse a line produced by :meth:`to_line`."""
        parts = line.split()
        if len(parts) not in (4, 5):
            raise ValueError(f"Malformed trace line: {line!r}")
        note = parts[4] if len(parts) == 5 else None
        return cls(
            timestamp=float(parts[1]),
            component=parts[2],
            kind=TraceEventKind(parts[0]),
            byte_count=int(parts[3]),
            note=note,
        )


TraceCallback = Callable[[TraceEventKind, str, int, Optional[str]], None]


class TraceSource:
    """Base class for components that emit trace events.

    Attributes:
        trace_id: Identifier written in the component column of the trace.
        hooks: Callbacks invoked on every emitted event.
    """

    def __init__(self, trace_id: str) -> None:
        self.trace_id = trace_id
        self.hooks: List[TraceCallback] = []

    def register_hook(self, callback: TraceCallback) -> None:
        """Register a callback for every event this component emits."""
        self.hooks.append(callback)

    def emit(
        self, kind: TraceEventKind, byte_count: int, note: Optional[str] = None
    ) -> None:
        for callback in self.hooks:
            callback(kind, self.trace_id, byte_count, note)


class TraceSink:
    """Append-only recorder of trace events.

    Records are written to ``path`` when one is given, otherwise kept in
    memory. The output is flushed and closed by :meth:`close`, which is safe
    to call more than once; the sink is also a context manager.

    Attributes:
        path: Output file, or None for an in-memory sink.
        records: Records kept in memory (always for in-memory sinks).
        records_written: Number of records appended so far.
    """

    def __init__(
        self, path: Optional[Union[str, Path]] = None, keep_records: bool = False
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.keep_records = keep_records or self.path is None
        self.records: List[TraceRecord] = []
        self.records_written = 0
        self.closed = False
        self._clock: Optional[Callable[[], float]] = None
        self._last_timestamp = float("-inf")
        self._stream: Optional[TextIO] = None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._stream = self.path.open("w", encoding="utf-8")
            logger.debug("Trace output opened at %s", self.path)

    def attach(self, sources: Iterable[Any], clock: Callable[[], float]) -> int:
        """Subscribe to every given trace source.

        Args:
            sources: Components exposing ``register_hook``.
            clock: Callable returning the current simulated time.

        Returns:
            Number of sources attached.
        """
        self._clock = clock
        count = 0
        for source in sources:
            source.register_hook(self.record)
            count += 1
        logger.debug("Trace sink attached to %d sources", count)
        return count

    def record(
        self,
        kind: TraceEventKind,
        component: str,
        byte_count: int,
        note: Optional[str] = None,
    ) -> None:
        if self.closed:
            raise RuntimeError("Cannot record to a closed trace sink")
        timestamp = self._clock() if self._clock is not None else 0.0
        if timestamp < self._last_timestamp:
            raise RuntimeError(
                f"Trace timestamp went backwards: {timestamp} < {self._last_timestamp}"
            )
        self._last_timestamp = timestamp
        entry = TraceRecord(timestamp, component, kind, byte_count, note)
        if self._stream is not None:
            self._stream.write(entry.to_line() + "\n")
        if self.keep_records:
            self.records.append(entry)
        self.records_written += 1

    def close(self) -> None:
        """Flush and close the output stream."""
        if self.closed:
            return
        self.closed = True
        if self._stream is not None:
            self._stream.flush()
            self._stream.close()
            logger.debug(
                "Trace output %s closed with %d records", self.path, self.records_written
            )

    def __enter__(self) -> "TraceSink":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def iter_trace(path: Union[str, Path]) -> Iterator[TraceRecord]:
    """Yield the records of a trace file one at a time."""
    with Path(path).open("r", encoding="utf-8") as fh:
        for line in fh:
            if line.strip():
                yield TraceRecord.from_line(line)


def read_trace(path: Union[str, Path]) -> List[TraceRecord]:
    """Load every record of a trace file."""
    return list(iter_trace(path))
