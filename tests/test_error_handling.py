from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import (
    StelIndexError,
    StelKeyError,
    StelNameError,
    StelThrow,
    StelTypeError,
    StelZeroDivisionError,
    plain,
    run_output,
    run_program,
    run_runtime_case,
)

SCENARIOS = [
    pytest.param(
        'let r = 0\ntry { throw 5 } catch e { r = e + 1 }\nr',
        ("int", 6),
        None,
        id="catch-binds-payload",
    ),
    pytest.param(
        'let r = ""\ntry { throw "x" } catch (e) { r = e }\nr',
        ("string", "x"),
        None,
        id="catch-paren-binder",
    ),
    pytest.param(
        'let r = 0\ntry { throw 1 } catch { r = 2 }\nr',
        ("int", 2),
        None,
        id="catch-without-binder",
    ),
    pytest.param(
        'let r = 0\ntry { r = 1 } catch e { r = 2 }\nr',
        ("int", 1),
        None,
        id="no-error-skips-handler",
    ),
    pytest.param(
        'let t = ""\ntry { undefined_name } catch e { t = e["type"] }\nt',
        ("string", "NameError"),
        None,
        id="internal-error-map",
    ),
    pytest.param(
        'let t = ""\ntry { 1 / 0 } catch e { t = e["type"] }\nt',
        ("string", "ZeroDivisionError"),
        None,
        id="zero-division-caught",
    ),
    pytest.param(
        'let t = ""\ntry { [1][5] } catch e { t = e["type"] }\nt',
        ("string", "IndexError"),
        None,
        id="index-error-caught",
    ),
    pytest.param(
        dedent(
            """\
            let log = []
            try {
                try { throw "inner" } catch e { push(log, e); throw "outer" }
            } catch e {
                push(log, e)
            }
            log
        """
        ),
        ("list", ["inner", "outer"]),
        None,
        id="nested-rethrow",
    ),
    pytest.param(
        dedent(
            """\
            fn risky() { throw {"code": 7} }
            let code = 0
            try { risky() } catch e { code = e["code"] }
            code
        """
        ),
        ("int", 7),
        None,
        id="throw-escapes-function",
    ),
    pytest.param(
        dedent(
            """\
            fn f() {
                try { return 1 } catch e { return 2 }
            }
            f()
        """
        ),
        ("int", 1),
        None,
        id="return-passes-through-try",
    ),
    pytest.param(
        dedent(
            """\
            let n = 0
            for x in [1, 2, 3] {
                try { if x == 2 { break } } catch e { }
                n += 1
            }
            n
        """
        ),
        ("int", 1),
        None,
        id="break-passes-through-try",
    ),
    pytest.param(
        'let y = 1\ntry { let y = 2; throw 0 } catch e { }\ny',
        ("int", 1),
        None,
        id="try-body-is-scoped",
    ),
    pytest.param(
        'try { throw 1 } catch e { }\ne',
        None,
        StelNameError,
        id="binder-scoped-to-handler",
    ),
    pytest.param('throw "boom"', None, StelThrow, id="uncaught-throw"),
    pytest.param("[1, 2][2]", None, StelIndexError, id="uncaught-index"),
    pytest.param('let m = {"a": 1}\nm["b"]', None, StelKeyError, id="uncaught-key"),
    pytest.param("1 + \"a\"", None, StelTypeError, id="uncaught-type"),
    pytest.param(
        "try { throw 1 } catch e { 1 // 0 }",
        None,
        StelZeroDivisionError,
        id="error-inside-handler-propagates",
    ),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_error_handling(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)


def test_try_catch_prints(capsys: pytest.CaptureFixture[str]) -> None:
    source = 'try { throw "fail!" } catch e { print("Caught error: " + e) }'
    assert run_output(source, capsys) == ["Caught error: fail!"]


def test_internal_error_value(capsys: pytest.CaptureFixture[str]) -> None:
    source = dedent(
        """\
        try {
            missing()
        } catch e {
            print(e["type"])
            print(e["message"])
        }
        """
    )
    assert run_output(source, capsys) == ["NameError", "Name 'missing' is not defined"]


def test_uncaught_throw_keeps_payload() -> None:
    with pytest.raises(StelThrow) as exc_info:
        run_program('throw {"code": 3}')

    err = exc_info.value
    assert err.kind == "RuntimeError"
    assert plain(err.payload) == {"code": 3}


def test_uncaught_error_reports_location() -> None:
    with pytest.raises(StelNameError) as exc_info:
        run_program("let a = 1\nlet b = a + nope")

    err = exc_info.value
    assert err.line == 2
    assert err.column is not None
    assert "(line 2, col" in str(err)


def test_error_inside_function_reports_innermost_location() -> None:
    source = dedent(
        """\
        fn inner() {
            return [][0]
        }
        inner()
        """
    )
    with pytest.raises(StelIndexError) as exc_info:
        run_program(source)

    assert exc_info.value.line == 2
