"""
Process trace recording.

The ProcessRecorder keeps the live, bounded in-memory trace used for
display and for the end-of-session export. Every append is also written
through to a TraceLog, an append-only CSV file flushed after each row, so a
crash or forced termination loses nothing that was already recorded.

Memory is bounded by a capacity ceiling. When an append would exceed it,
the recorder keeps only the newest half of its samples. This is a lossy
compaction, not a sliding window: the CSV trace still holds every row, the
in-memory series (and the exported trace.json) loses the older half.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from .interfaces import Sample

logger = logging.getLogger(__name__)

TRACE_COLUMNS = (
    "elapsed_minutes",
    "temperature_C",
    "voltage_V",
    "target_temperature_C",
)


class TraceLog:
    """
    Append-only CSV sink for recorded samples.

    Schema (one row per recorded tick):
        elapsed_minutes,temperature_C,voltage_V,target_temperature_C
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file)
        self._writer.writerow(TRACE_COLUMNS)
        self._file.flush()

    @property
    def closed(self) -> bool:
        return self._file.closed

    def write(self, sample: Sample) -> None:
        self._writer.writerow(
            [
                f"{sample.elapsed_min:.4f}",
                f"{sample.temp_c:.4f}",
                f"{sample.voltage_v:.4f}",
                f"{sample.target_c:.4f}",
            ]
        )
        self._file.flush()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


def read_trace_csv(path: str | Path) -> list[Sample]:
    """Load a trace written by TraceLog."""
    with Path(path).open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        return [
            Sample(
                elapsed_min=float(row["elapsed_minutes"]),
                temp_c=float(row["temperature_C"]),
                voltage_v=float(row["voltage_V"]),
                target_c=float(row["target_temperature_C"]),
            )
            for row in reader
        ]


class ProcessRecorder:
    """
    Bounded, append-only process trace.

    Attributes:
        capacity: Maximum number of samples held in memory.
        total_appended: Samples appended over the recorder's lifetime.
        truncations: Number of compactions performed.
    """

    def __init__(self, capacity: int = 10000, sink: TraceLog | None = None):
        if capacity < 2:
            raise ValueError("capacity must be >= 2")
        self.capacity = capacity
        self.sink = sink
        self.total_appended = 0
        self.truncations = 0
        self._samples: list[Sample] = []

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> list[Sample]:
        """Retained samples, oldest first (a copy)."""
        return list(self._samples)

    @property
    def last(self) -> Sample | None:
        return self._samples[-1] if self._samples else None

    def truncate_if_over_capacity(self) -> bool:
        """
        Make room for one more sample.

        When the recorder is full, drop the oldest half and keep the newest
        capacity // 2 samples in order.

        Returns:
            True if samples were dropped
        """
        if len(self._samples) < self.capacity:
            return False
        keep = self.capacity // 2
        dropped = len(self._samples) - keep
        del self._samples[:dropped]
        self.truncations += 1
        logger.info(
            "Recorder at capacity (%d): dropped %d oldest samples", self.capacity, dropped
        )
        return True

    def append(self, sample: Sample) -> None:
        self.truncate_if_over_capacity()
        self._samples.append(sample)
        self.total_appended += 1
        if self.sink is not None:
            self.sink.write(sample)

    def columns(self) -> dict[str, list[float]]:
        """The retained trace as four equal-length columns."""
        return {
            "elapsed_minutes": [s.elapsed_min for s in self._samples],
            "temperature_C": [s.temp_c for s in self._samples],
            "voltage_V": [s.voltage_v for s in self._samples],
            "target_temperature_C": [s.target_c for s in self._samples],
        }
