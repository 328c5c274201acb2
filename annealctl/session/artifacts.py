"""
Artifact writing for annealctl sessions.

The CSV trace (trace.csv) is written incrementally by the TraceLog while the
session runs. At session end the retained trace and the session summary are
exported as JSON:

- metrics.json: session metadata (timing, tick counts, final state, fault,
  truncation count)
- trace.json: the retained trace as a finalized table

Example artifact directory structure:
```
artifacts/runs/20240115_120000_anneal/
├── trace.csv       # Crash-safe incremental trace (every recorded tick)
├── metrics.json    # Session metadata
└── trace.json      # Retained trace (possibly truncated)
```

trace.json holds what the in-memory recorder retained. On long sessions the
recorder drops its oldest half whenever it reaches capacity, so trace.json
may start later than trace.csv; metrics.json reports how many truncations
happened.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

from .interfaces import Sample, SessionMetrics, SessionResult
from .recorder import TRACE_COLUMNS


def write_session_artifacts(*, out_path: Path, result: SessionResult) -> None:
    """
    Write the end-of-session artifacts to disk.

    Args:
        out_path: Output directory path. Will be created if it doesn't
                  exist, including parent directories.
        result: Finished session result.
    """
    out_path = Path(out_path)
    out_path.mkdir(parents=True, exist_ok=True)

    _write_metrics_json(out_path, result.metrics, result.trace_path)
    _write_trace_json(out_path, result.samples)


def _write_metrics_json(
    out_path: Path,
    metrics: SessionMetrics,
    trace_path: str | None,
) -> None:
    """
    Write metrics.json artifact.

    Schema:
    {
        "session": {
            "session_name": str,
            "start_time": str (ISO 8601),
            "finish_time": str (ISO 8601),
            "total_ticks": int,
            "degraded_ticks": int,
            "final_state": str,
            "fault": str | null,
            "samples_recorded": int,
            "samples_retained": int,
            "truncations": int
        },
        "trace_csv": str | null
    }
    """
    payload = {
        "session": asdict(metrics),
        "trace_csv": trace_path,
    }

    metrics_path = out_path / "metrics.json"
    metrics_path.write_text(
        json.dumps(payload, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )


def _write_trace_json(out_path: Path, samples: list[Sample]) -> None:
    """
    Write trace.json artifact.

    Schema:
    {
        "columns": ["elapsed_minutes", "temperature_C", "voltage_V",
                    "target_temperature_C"],
        "samples": [[float, float, float, float], ...]
    }
    """
    payload = {
        "columns": list(TRACE_COLUMNS),
        "samples": [
            [s.elapsed_min, s.temp_c, s.voltage_v, s.target_c] for s in samples
        ],
    }
    trace_path = out_path / "trace.json"
    trace_path.write_text(json.dumps(payload) + "\n", encoding="utf-8")


def load_trace_json(path: Path | str) -> list[Sample]:
    """Load samples from a trace.json artifact."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    index = {name: i for i, name in enumerate(data["columns"])}
    return [
        Sample(
            elapsed_min=row[index["elapsed_minutes"]],
            temp_c=row[index["temperature_C"]],
            voltage_v=row[index["voltage_V"]],
            target_c=row[index["target_temperature_C"]],
        )
        for row in data["samples"]
    ]
