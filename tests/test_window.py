from emasched.diagnostics import find_conflicts
from emasched.window import Window, derived_layout, explicit_layout


def test_derived_worked_example():
    layout = derived_layout(540, 1260, 4, 30)
    assert layout.is_configured
    assert layout.jitter == 15
    assert [w.start for w in layout.windows] == [555, 735, 915, 1095]
    assert all(w.duration == 150 for w in layout.windows)
    assert [w.id for w in layout.windows] == [1, 2, 3, 4]


def test_derived_jittered_extents_stay_inside_bounds():
    layout = derived_layout(540, 1260, 4, 30)
    first, last = layout.windows[0], layout.windows[-1]
    assert first.jittered(layout.jitter)[0] == 540
    assert last.jittered(layout.jitter)[1] == 1245 + 15


def test_gap_equal_to_twice_jitter_has_no_conflicts():
    for count, gap in [(1, 0), (3, 20), (4, 30), (6, 44)]:
        layout = derived_layout(480, 1320, count, gap)
        assert layout.jitter * 2 == gap
        assert find_conflicts(layout.windows, layout.jitter) == ()


def test_odd_gap_leaves_one_minute_dead_zones():
    layout = derived_layout(540, 1260, 3, 31)
    conflicts = find_conflicts(layout.windows, layout.jitter)
    assert len(conflicts) == 2
    assert all(c.length == 1 for c in conflicts)


def test_derived_zero_samples_is_empty():
    layout = derived_layout(540, 1260, 0, 30)
    assert not layout.is_configured
    assert layout.warnings


def test_derived_non_positive_span_is_empty():
    layout = derived_layout(600, 620, 1, 40)
    assert layout.windows == ()
    assert layout.jitter == 20
    assert layout.warnings


def test_derived_non_positive_duration_is_empty():
    layout = derived_layout(540, 600, 4, 30)
    assert not layout.is_configured
    assert "do not fit" in layout.warnings[0]


def test_explicit_keeps_overlapping_windows():
    windows = [Window(1, 540, 90), Window(2, 600, 90)]
    layout = explicit_layout(windows, jitter=10)
    assert layout.windows == tuple(windows)
    assert layout.jitter == 10
    assert layout.warnings == ()


def test_explicit_rejects_non_positive_duration():
    layout = explicit_layout([Window(1, 540, 90), Window(2, 700, 0)])
    assert not layout.is_configured
    assert "window 2" in layout.warnings[0]


def test_explicit_empty_list_is_not_configured():
    layout = explicit_layout([])
    assert not layout.is_configured
