"""
Plotting utilities for annealctl session traces.

Generates the end-of-session figure (temperature vs target, commanded
voltage) from a list of samples or from a trace artifact on disk.

Requires matplotlib: pip install annealctl[plot]
"""

from __future__ import annotations

from pathlib import Path

from .interfaces import Sample


def check_matplotlib_available() -> bool:
    """Check if matplotlib is available."""
    try:
        import matplotlib  # noqa: F401
        return True
    except ImportError:
        return False


def plot_trace(
    samples: list[Sample],
    output_path: Path | str,
    title: str | None = None,
    show: bool = False,
) -> Path:
    """
    Plot a session trace as a two-panel figure.

    Panel 1: measured temperature and target temperature.
    Panel 2: commanded heater voltage.

    Args:
        samples: Trace samples, oldest first.
        output_path: Path to save the figure (PNG, PDF, etc.).
        title: Optional figure title.
        show: If True, also display the plot interactively.

    Returns:
        The path the figure was saved to.

    Raises:
        RuntimeError: If matplotlib is not installed.
        ValueError: If there are no samples.
    """
    if not check_matplotlib_available():
        raise RuntimeError(
            "matplotlib not installed. Install with: pip install annealctl[plot]"
        )
    if not samples:
        raise ValueError("No samples to plot")

    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    minutes = [s.elapsed_min for s in samples]
    temps = [s.temp_c for s in samples]
    targets = [s.target_c for s in samples]
    volts = [s.voltage_v for s in samples]

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 6), sharex=True,
                                   gridspec_kw={"height_ratios": [3, 1]})

    # Panel 1: Temperature
    ax1.plot(minutes, temps, "-b", linewidth=1.5, label="Measured Temperature")
    ax1.plot(minutes, targets, "--r", linewidth=1.5, label="Target Temperature")
    ax1.set_ylabel("Temperature (°C)")
    ax1.grid(True, alpha=0.3)
    ax1.legend(loc="lower right")

    # Panel 2: Voltage
    ax2.step(minutes, volts, where="post", color="tab:green", linewidth=1.5)
    ax2.set_ylabel("Voltage (V)")
    ax2.set_xlabel("Time (minutes)")
    ax2.grid(True, alpha=0.3)

    fig.suptitle(title or f"Annealing session ({minutes[-1]:.1f} min)",
                 fontsize=14, fontweight="bold")
    plt.tight_layout()

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=300, bbox_inches="tight")

    if show:
        plt.show()

    plt.close(fig)
    return output_path


def plot_from_artifacts(
    artifact_dir: Path | str,
    output_path: Path | str | None = None,
) -> Path:
    """
    Plot the trace stored in an artifact directory.

    Uses trace.csv (complete history) when present, else trace.json.

    Raises:
        FileNotFoundError: If neither trace file exists.
    """
    from .artifacts import load_trace_json
    from .recorder import read_trace_csv

    artifact_dir = Path(artifact_dir)
    csv_path = artifact_dir / "trace.csv"
    json_path = artifact_dir / "trace.json"
    if csv_path.exists():
        samples = read_trace_csv(csv_path)
    elif json_path.exists():
        samples = load_trace_json(json_path)
    else:
        raise FileNotFoundError(f"no trace.csv or trace.json in {artifact_dir}")

    if output_path is None:
        output_path = artifact_dir / "plot.png"
    return plot_trace(samples, output_path, title=f"Annealing session: {artifact_dir.name}")
