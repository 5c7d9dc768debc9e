"""Sweep derived layouts over sample counts and gaps; summarize coverage as JSON and CSV."""

from __future__ import annotations

import argparse
import csv
import json
from pathlib import Path

from emasched.diagnostics import ConflictKind, coverage_report
from emasched.utils import parse_time_of_day
from emasched.window import derived_layout


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--start", default="09:00", help="Earliest time of day")
    ap.add_argument("--end", default="21:00", help="Latest time of day")
    ap.add_argument("--counts", default="1 2 3 4 5 6 8", help="Samples per day to try")
    ap.add_argument("--gaps", default="0 15 30 45 60", help="Minimum gaps to try")
    ap.add_argument("--days", type=int, default=7)
    ap.add_argument("--trials", type=int, default=2000)
    ap.add_argument("--rng_seed", type=int, default=0)
    ap.add_argument("--outdir", default="artifacts", help="Output directory")
    args = ap.parse_args()

    start = parse_time_of_day(args.start)
    end = parse_time_of_day(args.end)
    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    rows = []
    for count in (int(x) for x in args.counts.split()):
        for gap in (int(x) for x in args.gaps.split()):
            layout = derived_layout(start, end, count, gap)
            report = coverage_report(layout, args.days, trials=args.trials, rng_seed=args.rng_seed)
            duration = layout.windows[0].duration if layout.windows else 0
            sampled_min = sampled_max = None
            if report.monte_carlo is not None:
                sampled_min = int(report.monte_carlo.times.min())
                sampled_max = int(report.monte_carlo.times.max())
            rows.append(
                {
                    "sample_count": count,
                    "min_gap": gap,
                    "configured": layout.is_configured,
                    "jitter": layout.jitter,
                    "window_duration": duration,
                    "overlaps": sum(1 for c in report.conflicts if c.kind is ConflictKind.OVERLAP),
                    "dead_zones": sum(1 for c in report.conflicts if c.kind is ConflictKind.DEAD_ZONE),
                    "sampled_min": sampled_min,
                    "sampled_max": sampled_max,
                }
            )

    (outdir / "layout_sweep.json").write_text(json.dumps(rows, indent=2))

    with (outdir / "layout_sweep.csv").open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        w.writeheader()
        w.writerows(rows)

    configured = sum(1 for r in rows if r["configured"])
    print(f"{configured}/{len(rows)} layouts configured; wrote {outdir / 'layout_sweep.json'}")


if __name__ == "__main__":
    main()
