from emasched.schedule import DrawKind, draw_plan, expand_schedule
from emasched.window import Window


WINDOWS = [Window(1, 555, 150), Window(2, 735, 150), Window(3, 915, 150)]


def test_expand_length_and_order():
    samples = expand_schedule(WINDOWS, 4)
    assert len(samples) == 4 * 3
    assert [(s.day, s.window_index) for s in samples[:4]] == [(1, 1), (1, 2), (1, 3), (2, 1)]
    assert samples[-1].day == 4
    assert samples[-1].start == 915
    assert samples[-1].day_offset == 3


def test_expand_with_no_windows():
    assert expand_schedule([], 7) == ()


def test_draw_plan_puts_jitter_days_first():
    samples = expand_schedule(WINDOWS, 2)
    plan = draw_plan(samples, jitter=15)
    kinds = [slot.kind for slot in plan]
    assert kinds == [DrawKind.JITTER] * 2 + [DrawKind.SAMPLE] * 6
    assert [slot.ordinal for slot in plan[2:]] == [1, 2, 3, 4, 5, 6]
    assert plan[2].sample == samples[0]


def test_draw_plan_without_jitter():
    samples = expand_schedule(WINDOWS, 2)
    plan = draw_plan(samples, jitter=0)
    assert all(slot.kind is DrawKind.SAMPLE for slot in plan)
    assert draw_plan((), jitter=15) == ()
