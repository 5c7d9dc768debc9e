"""Command line interface for the EMA schedule builder."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List

from .builder import ScheduleResult, build_schedule
from .calc_eval import CalcSyntaxError, evaluate_artifact
from .config import ConfigError, ScheduleConfig, config_from_dict, load_config
from .diagnostics import DEFAULT_TRIALS, ConflictKind
from .emitter import StepKind, emit_artifact
from .export import write_bundle
from .importer import ImportParseError, parse_project_file
from .utils import format_clock, format_time, to_json


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load_config(args: argparse.Namespace) -> ScheduleConfig:
    config = load_config(args.config) if args.config else ScheduleConfig()
    overrides: Dict[str, Any] = {}
    simple: Dict[str, Any] = {}
    if args.mode:
        overrides["mode"] = args.mode
    if args.days is not None:
        overrides["num_days"] = args.days
    if args.jitter is not None:
        overrides["jitter"] = args.jitter
    if args.window:
        overrides["windows"] = list(args.window)
        overrides.setdefault("mode", "advanced")
    for key, value in (
        ("start_bound", args.start),
        ("end_bound", args.end),
        ("sample_count", args.samples),
        ("min_gap", args.min_gap),
    ):
        if value is not None:
            simple[key] = value
    if simple:
        overrides["simple"] = simple
    return config_from_dict(overrides, config) if overrides else config.validate()


def _print_warnings(result: ScheduleResult) -> None:
    for message in result.warnings:
        print(f"Warning: {message}")
    if not result.is_configured:
        print("No schedule configured.")


def _layout_command(args: argparse.Namespace, result: ScheduleResult) -> int:
    if args.json:
        print(to_json(result.layout.to_dict()))
        return 0
    _print_warnings(result)
    layout = result.layout
    print(f"Mode: {result.config.mode}")
    print(f"Jitter: +/-{layout.jitter} min")
    for idx, window in enumerate(layout.windows, start=1):
        print(f"  {idx:2d}  {format_time(window.start)} - {format_time(window.end)}  ({window.duration} min)")
    print(f"{len(result.samples)} samples across {result.config.num_days} days")
    return 0


def _build_command(args: argparse.Namespace, result: ScheduleResult) -> int:
    if args.json:
        print(to_json(result.to_dict()))
    else:
        _print_warnings(result)
    if args.outdir:
        paths = write_bundle(args.outdir, result.artifact, result.config.asi)
        if not args.json:
            for path in paths:
                print(f"Wrote: {path}")
    elif not args.json:
        for step in result.artifact:
            print(f"{step.name} = {step.expression}")
    return 0


def _diagnose_command(args: argparse.Namespace, result: ScheduleResult) -> int:
    report = result.coverage(trials=args.trials, rng_seed=args.rng_seed)
    if args.plot:
        from .plot import plot_coverage

        path = plot_coverage(report, args.plot)
        if path is not None and not args.json:
            print(f"Wrote: {path}")
    if args.json:
        print(to_json(report.to_dict()))
        return 0
    _print_warnings(result)
    if not result.is_configured:
        return 0
    if report.is_clean:
        print("Coverage: no overlaps or dead zones")
    for conflict in report.conflicts:
        label = "Overlap" if conflict.kind is ConflictKind.OVERLAP else "Dead zone"
        print(
            f"{label}: windows {conflict.first_window} and {conflict.second_window}, "
            f"{format_clock(conflict.start)}-{format_clock(conflict.end)} ({conflict.length} min)"
        )
    print(f"Monte-Carlo: {report.monte_carlo.trials} records")
    for stats in report.monte_carlo.window_stats():
        print(
            f"  window {stats['window']}: {format_clock(stats['min'])}-{format_clock(stats['max'])} "
            f"mean {format_clock(round(stats['mean']))}"
        )
    return 0


def _simulate_command(args: argparse.Namespace, result: ScheduleResult) -> int:
    values = evaluate_artifact(result.artifact, args.seed)
    base = datetime.fromisoformat(args.start_at) if args.start_at else None
    rows: List[Dict[str, Any]] = []
    for step in result.artifact.of_kind(StepKind.DELIVERY):
        minutes = values[step.name]
        row: Dict[str, Any] = {"field": step.name, "day": step.day, "minutes": minutes}
        if base is not None:
            row["deliver_at"] = (base + timedelta(minutes=minutes)).isoformat(sep=" ")
        rows.append(row)
    if args.json:
        print(to_json(rows))
        return 0
    _print_warnings(result)
    for row in rows:
        when = row.get("deliver_at") or f"day {row['day']} {format_clock(row['minutes'] % 1440)}"
        print(f"  {row['field']}: {when}")
    return 0


def _import_command(args: argparse.Namespace) -> int:
    project = parse_project_file(args.project)
    samples = project.samples()
    if args.json:
        payload = {
            "project": project.project_name,
            "jitter": project.jitter(),
            "samples": [
                {"day": s.day, "window": s.window_index, "start": s.start, "duration": s.duration}
                for s in samples
            ],
        }
        print(to_json(payload))
    else:
        print(project.summary())
        for s in samples:
            print(f"  day {s.day:2d} sample {s.window_index:2d}: {format_time(s.start)} - {format_time(s.end)}")
        print(f"{len(samples)} samples")
    if args.outdir:
        config = ScheduleConfig()
        artifact = emit_artifact(samples, project.jitter(), config.naming)
        for path in write_bundle(args.outdir, artifact, config.asi):
            if not args.json:
                print(f"Wrote: {path}")
    return 0


def _run(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)
    try:
        if args.command == "import":
            return _import_command(args)
        result = build_schedule(_load_config(args))
        return args.func(args, result)
    except (ConfigError, ImportParseError, CalcSyntaxError, OSError, ValueError) as exc:
        print(f"Error: {exc}")
        return 2


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="Path to JSON configuration")
    common.add_argument("--mode", choices=["simple", "advanced"], default=None, help="Window layout mode")
    common.add_argument("--days", type=int, default=None, help="Number of study days")
    common.add_argument("--start", default=None, help="Earliest time of day (simple mode), HH:MM")
    common.add_argument("--end", default=None, help="Latest time of day (simple mode), HH:MM")
    common.add_argument("--samples", type=int, default=None, help="Samples per day (simple mode)")
    common.add_argument("--min_gap", "--min-gap", dest="min_gap", type=int, default=None, help="Minimum gap between windows")
    common.add_argument("--window", action="append", default=None, help="Explicit window HH:MM+MINUTES (repeatable)")
    common.add_argument("--jitter", type=int, default=None, help="Jitter radius in minutes (advanced mode)")
    common.add_argument("--verbose", action="store_true", help="Verbose output")
    common.add_argument("--json", action="store_true", help="Output JSON")
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Randomised EMA schedule builder for REDCap")
    sub = parser.add_subparsers(dest="command", required=True)
    common = _common_parser()

    layout_parser = sub.add_parser("layout", parents=[common], help="Show the sampling windows")
    layout_parser.set_defaults(func=_layout_command)

    emit_parser = sub.add_parser("build", parents=[common], help="Emit calculation fields and import tables")
    emit_parser.add_argument("--outdir", default=None, help="Directory for the CSV import tables")
    emit_parser.set_defaults(func=_build_command)

    diagnose_parser = sub.add_parser("diagnose", parents=[common], help="Check window coverage")
    diagnose_parser.add_argument("--trials", type=int, default=DEFAULT_TRIALS, help="Monte-Carlo trials")
    diagnose_parser.add_argument("--rng_seed", "--rng-seed", dest="rng_seed", type=int, default=None)
    diagnose_parser.add_argument("--plot", default=None, help="Write the coverage histogram PNG here")
    diagnose_parser.set_defaults(func=_diagnose_command)

    simulate_parser = sub.add_parser("simulate", parents=[common], help="Evaluate the fields for one seed")
    simulate_parser.add_argument("--seed", type=int, required=True, help="Raw seed (record name)")
    simulate_parser.add_argument("--start_at", "--start-at", dest="start_at", default=None, help="ISO start timestamp")
    simulate_parser.set_defaults(func=_simulate_command)

    import_parser = sub.add_parser("import", help="Read samples from a project XML or data dictionary")
    import_parser.add_argument("project", help="REDCap project XML or data dictionary CSV")
    import_parser.add_argument("--outdir", default=None, help="Re-emit import tables for the imported samples")
    import_parser.add_argument("--verbose", action="store_true", help="Verbose output")
    import_parser.add_argument("--json", action="store_true", help="Output JSON")

    return parser


def main(argv: Any = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return _run(args)


if __name__ == "__main__":
    raise SystemExit(main())
