"""Coverage histogram rendering."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
from matplotlib.ticker import FuncFormatter, MultipleLocator  # noqa: E402

from .diagnostics import ConflictKind, CoverageReport  # noqa: E402
from .utils import format_clock  # noqa: E402


def plot_coverage(report: CoverageReport, out_path: str, title: Optional[str] = None) -> Optional[Path]:
    """Stacked-by-window histogram of simulated delivery times.

    Returns None when there is nothing to draw.
    """
    hist = report.histogram
    if hist is None or report.monte_carlo is None or report.monte_carlo.is_empty:
        return None

    layout = report.layout
    left = hist.edges[:-1]
    bottom = np.zeros(hist.counts.shape[1], dtype=np.int64)

    fig, ax = plt.subplots(figsize=(12, 4.5))
    for row, window in enumerate(layout.windows):
        ax.bar(
            left,
            hist.counts[row],
            width=hist.bin_width,
            bottom=bottom,
            align="edge",
            label=f"Window {row + 1}: {window.describe()}",
        )
        bottom = bottom + hist.counts[row]

    for conflict in report.conflicts:
        if conflict.kind is ConflictKind.OVERLAP:
            ax.axvspan(conflict.start, conflict.end, color="red", alpha=0.2, label="_overlap")
        else:
            ax.axvspan(conflict.start, conflict.end, color="grey", alpha=0.3, label="_dead zone")

    ax.set_xlim(hist.start, hist.end)
    ax.xaxis.set_major_locator(MultipleLocator(60))
    ax.xaxis.set_major_formatter(FuncFormatter(lambda x, _pos: format_clock(int(x) % 1440)))
    ax.set_xlabel("time of day")
    ax.set_ylabel(f"draws per {hist.bin_width} min")
    trials = report.monte_carlo.trials
    ax.set_title(
        title
        or f"Simulated delivery times | {trials} records x {report.num_days} days | jitter={layout.jitter} min"
    )
    ax.grid(True, linestyle="--", linewidth=0.5, alpha=0.6)
    ax.legend(loc="upper right", fontsize=8)
    fig.autofmt_xdate()
    fig.tight_layout()

    path = Path(out_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=180)
    plt.close(fig)
    return path
