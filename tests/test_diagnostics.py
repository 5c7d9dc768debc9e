import numpy as np

from emasched.diagnostics import (
    ConflictKind,
    coverage_report,
    display_range,
    find_conflicts,
    histogram,
    run_monte_carlo,
    simulate_record,
)
from emasched.schedule import expand_schedule
from emasched.window import Window, derived_layout, explicit_layout


def test_overlap_detected():
    conflicts = find_conflicts([Window(1, 540, 90), Window(2, 600, 60)], jitter=0)
    assert len(conflicts) == 1
    assert conflicts[0].kind is ConflictKind.OVERLAP
    assert (conflicts[0].start, conflicts[0].end) == (600, 630)


def test_dead_zone_detected():
    conflicts = find_conflicts([Window(1, 540, 60), Window(2, 700, 60)], jitter=10)
    assert len(conflicts) == 1
    assert conflicts[0].kind is ConflictKind.DEAD_ZONE
    assert (conflicts[0].start, conflicts[0].end) == (610, 690)


def test_touching_extents_are_neither():
    assert find_conflicts([Window(1, 540, 60), Window(2, 620, 60)], jitter=10) == ()


def test_conflicts_sorted_by_start_keep_input_numbers():
    conflicts = find_conflicts([Window(1, 900, 60), Window(2, 540, 60)], jitter=0)
    assert conflicts[0].kind is ConflictKind.DEAD_ZONE
    assert (conflicts[0].first_window, conflicts[0].second_window) == (2, 1)
    assert (conflicts[0].start, conflicts[0].end) == (600, 900)


def test_single_window_without_jitter_stays_inside():
    result = run_monte_carlo([Window(1, 540, 90)], jitter=0, num_days=1, trials=10000, rng_seed=7)
    assert result.times.shape == (10000, 1)
    assert result.times.min() >= 540
    assert result.times.max() < 630


def test_jittered_draws_stay_inside_jittered_extent():
    layout = derived_layout(540, 1260, 4, 30)
    result = run_monte_carlo(layout.windows, layout.jitter, num_days=3, trials=2000, rng_seed=1)
    for idx, window in enumerate(layout.windows, start=1):
        values = result.times_for_window(idx)
        assert values.size == 2000 * 3
        assert values.min() >= window.start - layout.jitter
        assert values.max() < window.end + layout.jitter
    assert result.times.min() >= 540
    assert result.times.max() < 1260


def test_golden_record_without_jitter():
    samples = expand_schedule([Window(1, 540, 90)], 1)
    assert simulate_record(42, samples, jitter=0) == [564]


def test_golden_record_with_jitter():
    samples = expand_schedule([Window(1, 555, 150)], 1)
    assert simulate_record(42, samples, jitter=15) == [555 + 9 + 111]


def test_monte_carlo_matches_scalar_simulation():
    layout = derived_layout(540, 1260, 3, 40)
    samples = expand_schedule(layout.windows, 2)
    seeds = np.array([0, 42, 7, 4294967295, 123456789], dtype=np.int64)
    result = run_monte_carlo(layout.windows, layout.jitter, num_days=2, seeds=seeds)
    assert result.trials == 5
    for row, seed in enumerate(seeds):
        expected = [t - s.day_offset * 1440 for s, t in zip(samples, simulate_record(int(seed), samples, layout.jitter))]
        assert result.times[row].tolist() == expected


def test_monte_carlo_is_reproducible_with_rng_seed():
    windows = [Window(1, 540, 90), Window(2, 720, 90)]
    first = run_monte_carlo(windows, 5, num_days=2, trials=500, rng_seed=11)
    second = run_monte_carlo(windows, 5, num_days=2, trials=500, rng_seed=11)
    assert np.array_equal(first.times, second.times)


def test_monte_carlo_without_windows_is_empty():
    result = run_monte_carlo([], 0, num_days=3, trials=100)
    assert result.is_empty


def test_display_range_rounds_to_hours():
    assert display_range([Window(1, 540, 90)], 0) == (480, 720)
    assert display_range([Window(1, 555, 150), Window(2, 1095, 150)], 15) == (480, 1320)


def test_histogram_counts_every_draw():
    windows = [Window(1, 540, 90)]
    result = run_monte_carlo(windows, 0, num_days=1, trials=1000, rng_seed=3)
    hist = histogram(result, windows, 0)
    assert hist.start == 480
    assert hist.end == 720
    assert hist.counts.shape == (1, 48)
    assert int(hist.counts.sum()) == 1000
    assert int(hist.counts[0, :12].sum()) == 0


def test_coverage_report_for_unconfigured_layout():
    layout = explicit_layout([])
    report = coverage_report(layout, num_days=7)
    assert report.monte_carlo is None
    assert report.histogram is None
    assert report.warnings


def test_coverage_report_without_days_is_empty():
    layout = explicit_layout([Window(1, 540, 90)])
    report = coverage_report(layout, num_days=0)
    assert report.monte_carlo is None
    assert report.warnings == ("num_days must be at least 1, got 0",)


def test_coverage_report_flags_overlap():
    layout = explicit_layout([Window(1, 540, 90), Window(2, 600, 90)], jitter=0)
    report = coverage_report(layout, num_days=2, trials=200, rng_seed=5)
    assert not report.is_clean
    payload = report.to_dict()
    assert payload["conflicts"][0]["kind"] == "overlap"
    assert payload["trials"] == 200
    assert len(payload["histogram"]["counts"]) == 2
