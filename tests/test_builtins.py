from __future__ import annotations

import io
from textwrap import dedent

import pytest

from tests.support.harness import (
    StelArityError,
    StelIndexError,
    StelTypeError,
    StelValueError,
    plain,
    run_output,
    run_program,
    run_runtime_case,
)

SCENARIOS = [
    pytest.param("len([1, 2, 3])", ("int", 3), None, id="len-list"),
    pytest.param('len("hello")', ("int", 5), None, id="len-string"),
    pytest.param('len({"a": 1, "b": 2})', ("int", 2), None, id="len-map"),
    pytest.param("len((1, 2))", ("int", 2), None, id="len-tuple"),
    pytest.param("len(5)", None, StelTypeError, id="len-unsized"),
    pytest.param("len()", None, StelArityError, id="len-arity"),
    pytest.param("sqrt(16)", ("float", 4.0), None, id="sqrt-float"),
    pytest.param("sqrt(-1)", None, StelValueError, id="sqrt-negative"),
    pytest.param("pow(2, 10)", ("float", 1024.0), None, id="pow-float"),
    pytest.param("abs(-3)", ("int", 3), None, id="abs-int"),
    pytest.param("abs(-2.5)", ("float", 2.5), None, id="abs-float"),
    pytest.param('abs("x")', None, StelTypeError, id="abs-type"),
    pytest.param("min([4, 2, 8])", ("int", 2), None, id="min-list"),
    pytest.param("max(4, 9, 1)", ("int", 9), None, id="max-varargs"),
    pytest.param('max(["b", "c", "a"])', ("string", "c"), None, id="max-strings"),
    pytest.param("min([])", None, StelValueError, id="min-empty"),
    pytest.param('max([1, "a"])', None, StelTypeError, id="max-mixed"),
    pytest.param("sum([1, 2, 3])", ("int", 6), None, id="sum"),
    pytest.param("sum([1, 2], 10)", ("int", 13), None, id="sum-start"),
    pytest.param("sum([1, 2.5])", ("float", 3.5), None, id="sum-float"),
    pytest.param("range(4)", ("list", [0, 1, 2, 3]), None, id="range-stop"),
    pytest.param("range(2, 5)", ("list", [2, 3, 4]), None, id="range-start-stop"),
    pytest.param("range(10, 0, -3)", ("list", [10, 7, 4, 1]), None, id="range-step"),
    pytest.param("range(1, 5, 0)", None, StelValueError, id="range-zero-step"),
    pytest.param("range(1.5)", None, StelTypeError, id="range-float"),
    pytest.param("reverse([1, 2, 3])", ("list", [3, 2, 1]), None, id="reverse-list"),
    pytest.param('reverse("abc")', ("string", "cba"), None, id="reverse-string"),
    pytest.param("sort([3, 1, 2])", ("list", [1, 2, 3]), None, id="sort"),
    pytest.param('sort([3, "a"])', None, StelTypeError, id="sort-mixed"),
    pytest.param('join(["a", "b", "c"], "-")', ("string", "a-b-c"), None, id="join"),
    pytest.param("join([1, 2])", ("string", "12"), None, id="join-stringifies"),
    pytest.param('split("a,b,c", ",")', ("list", ["a", "b", "c"]), None, id="split"),
    pytest.param('split("  a  b ")', ("list", ["a", "b"]), None, id="split-whitespace"),
    pytest.param('split("abc", "")', None, StelValueError, id="split-empty-separator"),
    pytest.param(
        'zip([1, 2, 3], ["a", "b"])',
        ("list", [(1, "a"), (2, "b")]),
        None,
        id="zip-shortest",
    ),
    pytest.param("zip([1])", None, StelArityError, id="zip-arity"),
    pytest.param(
        'enumerate(["x", "y"])',
        ("list", [(0, "x"), (1, "y")]),
        None,
        id="enumerate",
    ),
    pytest.param("flatten([[1, 2], 3, (4, 5)])", ("list", [1, 2, 3, 4, 5]), None, id="flatten-one-level"),
    pytest.param("flatten([[[1]]])", ("list", [[1]]), None, id="flatten-not-deep"),
    pytest.param("unique([1, 2, 1, 3, 2])", ("list", [1, 2, 3]), None, id="unique"),
    pytest.param('count("banana", "an")', ("int", 2), None, id="count-substring"),
    pytest.param("count([1, 2, 1], 1)", ("int", 2), None, id="count-list"),
    pytest.param('repeat("ab", 3)', ("string", "ababab"), None, id="repeat-string"),
    pytest.param("repeat(0, 3)", ("list", [0, 0, 0]), None, id="repeat-value"),
    pytest.param("repeat(0, -1)", None, StelValueError, id="repeat-negative"),
    pytest.param(
        "map([1, 2, 3], fn(x) { return x * 2 })",
        ("list", [2, 4, 6]),
        None,
        id="map",
    ),
    pytest.param(
        "filter(range(10), fn(x) { return x % 3 == 0 })",
        ("list", [0, 3, 6, 9]),
        None,
        id="filter",
    ),
    pytest.param(
        "find([1, 4, 9], fn(x) { return x > 3 })",
        ("int", 4),
        None,
        id="find",
    ),
    pytest.param(
        "find([1, 2], fn(x) { return x > 3 })",
        ("null", None),
        None,
        id="find-missing",
    ),
    pytest.param(
        "reduce([1, 2, 3, 4], fn(a, b) { return a + b })",
        ("int", 10),
        None,
        id="reduce",
    ),
    pytest.param(
        "reduce([], fn(a, b) { return a + b }, 100)",
        ("int", 100),
        None,
        id="reduce-initial",
    ),
    pytest.param(
        "reduce([], fn(a, b) { return a + b })",
        None,
        StelValueError,
        id="reduce-empty",
    ),
    pytest.param("map([1], 5)", None, StelTypeError, id="map-not-callable"),
    pytest.param("all([1, true, \"x\"])", ("bool", True), None, id="all-truthy"),
    pytest.param("any([0, null, \"\"])", ("bool", False), None, id="any-falsy"),
    pytest.param(
        "all([2, 4], fn(x) { return x % 2 == 0 })",
        ("bool", True),
        None,
        id="all-predicate",
    ),
    pytest.param(
        "any([1, 3], fn(x) { return x % 2 == 0 })",
        ("bool", False),
        None,
        id="any-predicate",
    ),
    pytest.param('map_keys({"a": 1, "b": 2})', ("list", ["a", "b"]), None, id="map-keys"),
    pytest.param('map_values({"a": 1, "b": 2})', ("list", [1, 2]), None, id="map-values"),
    pytest.param("array_contains([1, 2], 2.0)", ("bool", True), None, id="array-contains"),
    pytest.param("array_index_of([5, 6, 7], 7)", ("int", 2), None, id="array-index-of"),
    pytest.param("array_index_of([5], 1)", ("int", -1), None, id="array-index-of-missing"),
    pytest.param(
        'interp("Hello, {name}! {missing}", {"name": "Stel"})',
        ("string", "Hello, Stel! {missing}"),
        None,
        id="interp",
    ),
    pytest.param('type_of(1)', ("string", "int"), None, id="type-of-int"),
    pytest.param('type_of("s")', ("string", "str"), None, id="type-of-str"),
    pytest.param('to_string([1, "a"])', ("string", '[1, "a"]'), None, id="to-string"),
    pytest.param("let xs = [1]\npush(xs, 2)\nxs", ("list", [1, 2]), None, id="push-in-place"),
    pytest.param("let xs = [1, 2, 3]\npop(xs)", ("int", 3), None, id="pop-last"),
    pytest.param("let xs = [1, 2, 3]\npop(xs, 0)\nxs", ("list", [2, 3]), None, id="pop-index"),
    pytest.param("pop([])", None, StelIndexError, id="pop-empty"),
    pytest.param("pop([1], 4)", None, StelIndexError, id="pop-out-of-range"),
    pytest.param("push((1, 2), 3)", None, StelTypeError, id="push-tuple"),
    pytest.param('let s = "Hello"\ns.upper()', ("string", "HELLO"), None, id="str-upper"),
    pytest.param('let s = "Hello"\ns.lower()', ("string", "hello"), None, id="str-lower"),
    pytest.param('let s = "  x "\ns.strip()', ("string", "x"), None, id="str-strip"),
    pytest.param('let s = "a b"\ns.split()', ("list", ["a", "b"]), None, id="str-split"),
    pytest.param('let s = ", "\ns.join(["a", "b"])', ("string", "a, b"), None, id="str-join"),
    pytest.param('let s = "aaa"\ns.replace("a", "b", 2)', ("string", "bba"), None, id="str-replace-count"),
    pytest.param('let s = "hello"\ns.find("l")', ("int", 2), None, id="str-find"),
    pytest.param('let s = "hello"\ns.count("l")', ("int", 2), None, id="str-count"),
    pytest.param('let s = "hello"\ns.startswith("he")', ("bool", True), None, id="str-startswith"),
    pytest.param('let s = "hello"\ns.endswith("x")', ("bool", False), None, id="str-endswith"),
    pytest.param('let s = "123"\ns.isdigit()', ("bool", True), None, id="str-isdigit"),
    pytest.param('let s = "hello"\ns.len()', ("int", 5), None, id="str-len"),
    pytest.param('let s = "hello"\ns.upper(1)', None, StelArityError, id="str-method-arity"),
    pytest.param('let s = "hello"\ns.shout()', None, StelTypeError, id="str-unknown-method"),
    pytest.param("let xs = [1, 2]\nxs.len()", ("int", 2), None, id="list-len-method"),
    pytest.param("let n = 5\nn.len()", None, StelTypeError, id="int-has-no-methods"),
    pytest.param(
        'split(join(["a", "b", "c"], "-"), "-")',
        ("list", ["a", "b", "c"]),
        None,
        id="join-then-split-round-trip",
    ),
    pytest.param("map([], 5)", None, StelTypeError, id="map-non-function"),
    pytest.param('filter([1], "x")', None, StelTypeError, id="filter-non-function"),
    pytest.param("find([], null)", None, StelTypeError, id="find-non-function"),
    pytest.param('reduce([], "x", 0)', None, StelTypeError, id="reduce-non-function"),
    pytest.param("all([1], 3)", None, StelTypeError, id="all-non-function"),
    pytest.param("any([], [])", None, StelTypeError, id="any-non-function"),
    pytest.param("any([0, 1])", ("bool", True), None, id="any-without-predicate"),
    pytest.param("sqrt(1 << 2000)", None, StelValueError, id="sqrt-overflow"),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_builtins(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)


def test_sort_returns_copy(capsys: pytest.CaptureFixture[str]) -> None:
    source = dedent(
        """\
        let xs = [3, 1, 2]
        let ys = sort(xs)
        print(xs)
        print(ys)
        """
    )
    assert run_output(source, capsys) == ["[3, 1, 2]", "[1, 2, 3]"]


def test_split_then_join_restores_text(capsys: pytest.CaptureFixture[str]) -> None:
    source = dedent(
        """\
        let text = "a,b,,c"
        print(join(split(text, ","), ",") == text)
        """
    )
    assert run_output(source, capsys) == ["true"]


def test_print_formatting(capsys: pytest.CaptureFixture[str]) -> None:
    source = dedent(
        """\
        print("a", 1, 2.5, true, null)
        print([1, "two"], (3,), {"k": "v"})
        print()
        """
    )
    assert run_output(source, capsys) == [
        "a 1 2.5 true null",
        '[1, "two"] (3,) {"k": "v"}',
        "",
    ]


def test_print_returns_null(capsys: pytest.CaptureFixture[str]) -> None:
    assert run_output('print(type_of(print("x")))', capsys) == ["x", "null"]


def test_input_reads_line(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("Ada\n"))
    assert run_output('print("hi " + input())', capsys) == ["hi Ada"]


def test_input_at_eof_is_null(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    assert run_output("print(input() == null)", capsys) == ["true"]


def test_higher_order_with_named_function(capsys: pytest.CaptureFixture[str]) -> None:
    source = dedent(
        """\
        fn square(x) { return x * x }
        print(map(range(4), square))
        print(map([-1, 2], abs))
        """
    )
    assert run_output(source, capsys) == ["[0, 1, 4, 9]", "[1, 2]"]


@pytest.mark.parametrize(
    "source",
    [
        pytest.param('[1, 2.5, "x", (1, 2), {"k": null}]', id="collections"),
        pytest.param('join(map(range(3), to_string), "-")', id="higher-order"),
        pytest.param('(sort([3, 1, 2]), len("abc") * 2.5, abs(-4) // 3)', id="numeric"),
    ],
)
def test_pure_expression_is_repeatable(source: str) -> None:
    first = run_program(source)
    second = run_program(source)

    assert plain(first) == plain(second)
    assert repr(first) == repr(second)
