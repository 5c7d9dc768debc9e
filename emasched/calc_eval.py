"""Evaluator for the integer subset of REDCap calculation syntax used here."""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Optional, Tuple

from . import lcg
from .emitter import ScheduleArtifact, StepKind


class CalcSyntaxError(Exception):
    pass


_TOKEN_RE = re.compile(r"\s*(?:(\d+)|\[([A-Za-z0-9_]+)\]|(mod)\b|([-+*(),]))")
_CALCDATE_RE = re.compile(r"^\s*@CALCDATE\(\s*\[([A-Za-z0-9_]+)\]\s*,(.*),\s*'m'\s*\)\s*$", re.DOTALL)


def tokenize(text: str) -> List[Tuple[str, str]]:
    tokens: List[Tuple[str, str]] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise CalcSyntaxError(f"Unexpected input at {pos}: {text[pos:pos + 20]!r}")
        number, name, func, op = match.groups()
        if number is not None:
            tokens.append(("int", number))
        elif name is not None:
            tokens.append(("ref", name))
        elif func is not None:
            tokens.append(("func", func))
        else:
            tokens.append(("op", op))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: List[Tuple[str, str]], values: Mapping[str, int]):
        self.tokens = tokens
        self.values = values
        self.pos = 0

    def peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self, expected: Optional[str] = None) -> Tuple[str, str]:
        token = self.peek()
        if token is None:
            raise CalcSyntaxError("Unexpected end of expression")
        if expected is not None and token[1] != expected:
            raise CalcSyntaxError(f"Expected {expected!r}, got {token[1]!r}")
        self.pos += 1
        return token

    def expr(self) -> int:
        value = self.term()
        while (token := self.peek()) is not None and token[1] in ("+", "-"):
            self.take()
            rhs = self.term()
            value = value + rhs if token[1] == "+" else value - rhs
        return value

    def term(self) -> int:
        value = self.unary()
        while (token := self.peek()) is not None and token[1] == "*":
            self.take()
            value *= self.unary()
        return value

    def unary(self) -> int:
        token = self.peek()
        if token is not None and token[1] == "-":
            self.take()
            return -self.unary()
        return self.primary()

    def primary(self) -> int:
        kind, text = self.take()
        if kind == "int":
            return int(text)
        if kind == "ref":
            if text not in self.values:
                raise CalcSyntaxError(f"Unknown field [{text}]")
            return int(self.values[text])
        if kind == "func":
            self.take("(")
            lhs = self.expr()
            self.take(",")
            rhs = self.expr()
            self.take(")")
            if rhs == 0:
                raise CalcSyntaxError("mod by zero")
            return lhs % rhs
        if text == "(":
            value = self.expr()
            self.take(")")
            return value
        raise CalcSyntaxError(f"Unexpected token {text!r}")


def evaluate(expression: str, values: Mapping[str, int]) -> int:
    parser = _Parser(tokenize(expression), values)
    result = parser.expr()
    if parser.peek() is not None:
        raise CalcSyntaxError(f"Trailing input: {parser.peek()[1]!r}")
    return result


def split_calcdate(annotation: str) -> Tuple[str, str]:
    """Return (base field, minutes expression) of a ``@CALCDATE`` annotation."""
    match = _CALCDATE_RE.match(annotation)
    if not match:
        raise CalcSyntaxError(f"Not a minute-based @CALCDATE annotation: {annotation!r}")
    return match.group(1), match.group(2).strip()


def evaluate_artifact(artifact: ScheduleArtifact, raw_seed: int) -> Dict[str, int]:
    """Run the emitted chain for one record, as the host engine would.

    Delivery fields evaluate to minutes after the start timestamp.
    """
    naming = artifact.naming
    values: Dict[str, int] = {
        naming.seed_input_field: int(raw_seed),
        naming.field_a: lcg.LCG_A,
        naming.field_c: lcg.LCG_C,
        naming.field_m: lcg.LCG_M,
    }
    for item in artifact.steps:
        if item.kind is StepKind.DELIVERY:
            _, expression = split_calcdate(item.annotation(naming))
        else:
            expression = item.expression
        values[item.name] = evaluate(expression, values)
    return values
