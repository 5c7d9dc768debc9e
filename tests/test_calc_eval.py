import pytest

from emasched.calc_eval import CalcSyntaxError, evaluate, split_calcdate, tokenize


def test_precedence_and_parentheses():
    assert evaluate("2 + 3 * 4", {}) == 14
    assert evaluate("(2 + 3) * 4", {}) == 20
    assert evaluate("10 - 3 - 2", {}) == 5


def test_fields_and_mod():
    values = {"a": 1664525, "c": 1013904223, "m": 4294967296, "seed": 42}
    assert evaluate("mod((([a] * [seed]) + [c]), [m])", values) == 1083814273
    assert evaluate("mod([seed], 30) - 15", values) == -3


def test_unary_minus():
    assert evaluate("-5 + 2", {}) == -3


def test_unknown_field():
    with pytest.raises(CalcSyntaxError):
        evaluate("[missing] + 1", {})


def test_syntax_errors():
    with pytest.raises(CalcSyntaxError):
        evaluate("mod(1 2)", {})
    with pytest.raises(CalcSyntaxError):
        evaluate("1 +", {})
    with pytest.raises(CalcSyntaxError):
        evaluate("1 2", {})
    with pytest.raises(CalcSyntaxError):
        tokenize("1 / 2")


def test_split_calcdate():
    base, expr = split_calcdate("@CALCDATE([ema_start_at], (0 * 1440) + 555 + mod([rand_01], 150), 'm')")
    assert base == "ema_start_at"
    assert expr == "(0 * 1440) + 555 + mod([rand_01], 150)"
    with pytest.raises(CalcSyntaxError):
        split_calcdate("@HIDDEN")
