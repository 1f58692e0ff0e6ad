from __future__ import annotations

import pytest

from tests.support.harness import (
    StelTypeError,
    StelValueError,
    StelZeroDivisionError,
    run_runtime_case,
)

SCENARIOS = [
    pytest.param("1 + 2 * 3", ("int", 7), None, id="precedence"),
    pytest.param("(1 + 2) * 3", ("int", 9), None, id="grouping"),
    pytest.param("7 / 2", ("float", 3.5), None, id="true-division"),
    pytest.param("6 / 3", ("float", 2.0), None, id="division-is-float"),
    pytest.param("7 // 2", ("int", 3), None, id="floordiv-int"),
    pytest.param("-7 // 2", ("int", -4), None, id="floordiv-floors"),
    pytest.param("7.0 // 2", ("float", 3.0), None, id="floordiv-float"),
    pytest.param("-7 % 3", ("int", 2), None, id="mod-floor"),
    pytest.param("2 ** 10", ("float", 1024.0), None, id="pow-float"),
    pytest.param("-2 ** 2", ("float", -4.0), None, id="pow-binds-tighter"),
    pytest.param("2 ** 3 ** 2", ("float", 512.0), None, id="pow-right-assoc"),
    pytest.param("1 + 2.5", ("float", 3.5), None, id="int-float-promotion"),
    pytest.param("1 / 0", None, StelZeroDivisionError, id="div-zero"),
    pytest.param("1 % 0", None, StelZeroDivisionError, id="mod-zero"),
    pytest.param("1 // 0.0", None, StelZeroDivisionError, id="floordiv-zero-float"),
    pytest.param("(-8) ** 0.5", None, StelValueError, id="pow-domain"),
    pytest.param('"ab" + "cd"', ("string", "abcd"), None, id="str-concat"),
    pytest.param('"ab" * 3', ("string", "ababab"), None, id="str-repeat"),
    pytest.param('2 * "ab"', ("string", "abab"), None, id="str-repeat-left"),
    pytest.param("[1, 2] * 2", ("list", [1, 2, 1, 2]), None, id="list-repeat"),
    pytest.param('"ab" * -1', None, StelValueError, id="negative-repeat"),
    pytest.param('"a" + 1', None, StelTypeError, id="str-plus-int"),
    pytest.param("[1] + [2]", None, StelTypeError, id="list-plus-list"),
    pytest.param("null + 1", None, StelTypeError, id="null-arith"),
    pytest.param("6 & 3", ("int", 2), None, id="bit-and"),
    pytest.param("6 | 3", ("int", 7), None, id="bit-or"),
    pytest.param("6 ^ 3", ("int", 5), None, id="bit-xor"),
    pytest.param("1 << 4", ("int", 16), None, id="shift-left"),
    pytest.param("256 >> 4", ("int", 16), None, id="shift-right"),
    pytest.param("~5", ("int", -6), None, id="bit-not"),
    pytest.param("1.5 & 1", None, StelTypeError, id="bitwise-int-only"),
    pytest.param("1 << -1", None, StelValueError, id="negative-shift"),
    pytest.param("1 < 2", ("bool", True), None, id="lt"),
    pytest.param("2 <= 2.0", ("bool", True), None, id="lte-mixed"),
    pytest.param('"apple" < "banana"', ("bool", True), None, id="str-compare"),
    pytest.param('1 < "a"', None, StelTypeError, id="mixed-compare"),
    pytest.param("1 == 1.0", ("bool", True), None, id="numeric-eq"),
    pytest.param("[1, [2, 3]] == [1, [2, 3]]", ("bool", True), None, id="structural-eq"),
    pytest.param('let m = {"a": 1}; m == {"a": 1}', ("bool", True), None, id="map-eq"),
    pytest.param('1 == "1"', ("bool", False), None, id="cross-type-eq"),
    pytest.param("null == null", ("bool", True), None, id="null-eq"),
    pytest.param("(1, 2) != (1, 3)", ("bool", True), None, id="tuple-neq"),
    pytest.param("print == print", None, StelTypeError, id="function-eq"),
    pytest.param("2 in [1, 2, 3]", ("bool", True), None, id="in-list"),
    pytest.param('"a" in {"a": 1}', ("bool", True), None, id="in-map-keys"),
    pytest.param('"ell" in "hello"', ("bool", True), None, id="in-str"),
    pytest.param("4 not in (1, 2)", ("bool", True), None, id="not-in-tuple"),
    pytest.param("1 in 5", None, StelTypeError, id="in-unsupported"),
    pytest.param("1 is 1", ("bool", True), None, id="is-primitive"),
    pytest.param("1 is 1.0", ("bool", False), None, id="is-needs-same-type"),
    pytest.param("[1] is [1]", ("bool", False), None, id="is-identity"),
    pytest.param("let xs = [1]; let ys = xs; xs is ys", ("bool", True), None, id="is-alias"),
    pytest.param("null is not null", ("bool", False), None, id="is-not"),
    pytest.param("1 and 0", ("bool", False), None, id="and-bool"),
    pytest.param('0 or "x"', ("bool", True), None, id="or-bool"),
    pytest.param("not []", ("bool", True), None, id="not-empty-list"),
    pytest.param("!1", ("bool", False), None, id="bang-not"),
    pytest.param("true && false || true", ("bool", True), None, id="symbol-logic"),
    pytest.param("false and undefined_name", ("bool", False), None, id="and-short-circuit"),
    pytest.param("true or undefined_name", ("bool", True), None, id="or-short-circuit"),
    pytest.param("1..4", ("list", [1, 2, 3]), None, id="range-half-open"),
    pytest.param("3..3", ("list", []), None, id="range-empty"),
    pytest.param("1.0..3", None, StelTypeError, id="range-int-only"),
    pytest.param("-(3)", ("int", -3), None, id="unary-minus"),
    pytest.param('-"a"', None, StelTypeError, id="unary-minus-str"),
    pytest.param("not not 0.0", ("bool", False), None, id="float-zero-falsy"),
    pytest.param('not ""', ("bool", True), None, id="empty-str-falsy"),
    pytest.param("not {}", ("bool", True), None, id="empty-map-falsy"),
    pytest.param("(1 << 2000) / 1", None, StelValueError, id="true-division-overflow"),
    pytest.param("(1 << 2000) + 0.5", None, StelValueError, id="float-promotion-overflow"),
    pytest.param("let x = 1 << 2000\nx -= 0.5", None, StelValueError, id="compound-assign-overflow"),
    pytest.param(
        'let t = ""\ntry { (1 << 2000) / 1 } catch e { t = e["type"] }\nt',
        ("string", "ValueError"),
        None,
        id="overflow-is-catchable",
    ),
    pytest.param("(1 << 2000) // 3 > 0", ("bool", True), None, id="big-int-floordiv-stays-int"),
    pytest.param("len(to_string(1 << 20000))", ("int", 6021), None, id="big-int-display"),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_operators(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)
