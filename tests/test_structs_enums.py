from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import (
    StelArityError,
    StelKeyError,
    StelNameError,
    StelTypeError,
    StlEnumVariant,
    StlStruct,
    run_output,
    run_program,
    run_runtime_case,
)

POINT = "struct Point { x: int, y: int }\n"
SHAPE = "enum Shape { Circle(radius), Rect(w, h), Empty }\n"

SCENARIOS = [
    pytest.param(POINT + "let p = Point { x: 1, y: 2 }\np.x + p.y", ("int", 3), None, id="struct-fields"),
    pytest.param(POINT + "let p = Point { y: 2, x: 1 }\np", ("repr", "Point { x: 1, y: 2 }"), None, id="declaration-order"),
    pytest.param(POINT + "Point { x: 1 }", None, StelTypeError, id="missing-field"),
    pytest.param(POINT + "Point { x: 1, y: 2, z: 3 }", None, StelTypeError, id="unknown-field"),
    pytest.param(POINT + "Point { x: 1, x: 2, y: 3 }", None, StelTypeError, id="duplicate-field"),
    pytest.param(POINT + "let p = Point { x: 1, y: 2 }\np.z", None, StelTypeError, id="read-unknown-field"),
    pytest.param(POINT + "let p = Point { x: 1, y: 2 }\np.x = 10\np.x", ("int", 10), None, id="field-assign"),
    pytest.param(POINT + "let p = Point { x: 1, y: 2 }\np.y += 5\np.y", ("int", 7), None, id="field-compound-assign"),
    pytest.param(POINT + "let p = Point { x: 1, y: 2 }\np.z = 1", None, StelTypeError, id="assign-unknown-field"),
    pytest.param(
        POINT + "Point { x: 1, y: 2 } == Point { x: 1, y: 2 }",
        ("bool", True),
        None,
        id="struct-equality",
    ),
    pytest.param("Nope { a: 1 }", None, StelNameError, id="unknown-struct"),
    pytest.param(POINT + "struct Point { x: int, y: int }\n1", ("int", 1), None, id="redeclare-same-shape"),
    pytest.param(POINT + "struct Point { x }", None, StelTypeError, id="redeclare-different-shape"),
    pytest.param("struct Bad { a, a }", None, StelTypeError, id="duplicate-field-decl"),
    pytest.param("struct Empty { }\nEmpty { }", ("repr", "Empty {}"), None, id="empty-struct"),
    pytest.param(SHAPE + "Shape::Circle(2)", ("repr", "Shape::Circle(2)"), None, id="enum-payload"),
    pytest.param(SHAPE + "Shape::Empty", ("repr", "Shape::Empty"), None, id="enum-unit"),
    pytest.param(SHAPE + "Shape::Circle", None, StelTypeError, id="payload-variant-needs-args"),
    pytest.param(SHAPE + "Shape::Rect(1)", None, StelArityError, id="payload-arity"),
    pytest.param(SHAPE + "Shape::Triangle", None, StelNameError, id="unknown-variant"),
    pytest.param("Color::Red", None, StelNameError, id="unknown-enum"),
    pytest.param(POINT + "Point::x", None, StelTypeError, id="struct-is-not-enum"),
    pytest.param(SHAPE + "Shape::Circle(1) == Shape::Circle(1)", ("bool", True), None, id="enum-equality"),
    pytest.param(SHAPE + "Shape::Circle(1) == Shape::Circle(2)", ("bool", False), None, id="enum-payload-differs"),
    pytest.param(
        SHAPE + dedent(
            """\
            fn area(s) {
                return match s {
                    Shape::Circle(r) => 3 * r * r,
                    Shape::Rect(w, h) => w * h,
                    Shape::Empty => 0,
                }
            }
            [area(Shape::Circle(2)), area(Shape::Rect(2, 5)), area(Shape::Empty)]
        """
        ),
        ("list", [12, 10, 0]),
        None,
        id="enum-match",
    ),
    pytest.param(
        SHAPE + "match Shape::Empty { Shape::Square => 1, _ => 2 }",
        None,
        StelNameError,
        id="enum-pattern-unknown-variant",
    ),
    pytest.param(
        POINT + dedent(
            """\
            let p = Point { x: 0, y: 5 }
            match p {
                Point { x: 0, y } => y,
                _ => -1,
            }
        """
        ),
        ("int", 5),
        None,
        id="struct-pattern",
    ),
    pytest.param(
        POINT + dedent(
            """\
            match (Point { x: 1, y: 5 }) {
                Point { x: 0, y } => y,
                Point { x, y: 5 } => x * 100,
            }
        """
        ),
        ("int", 100),
        None,
        id="struct-pattern-second-arm",
    ),
    pytest.param(
        POINT + "let p = Point { x: 1, y: 2 }\nmatch p { Point { q } => q }",
        None,
        StelTypeError,
        id="struct-pattern-unknown-field",
    ),
    pytest.param(
        dedent(
            """\
            let m = {"name": "stel", "count": 1}
            m["count"] += 1
            m.name + ":" + to_string(m["count"])
        """
        ),
        ("string", "stel:2"),
        None,
        id="map-index-and-field",
    ),
    pytest.param('let m = {"a": 1}\nm["b"]', None, StelKeyError, id="map-missing-key"),
    pytest.param("let m = {1: 2}", None, StelTypeError, id="map-keys-are-strings"),
    pytest.param(
        'let m = {"f": fn(x) { return x + 1 }}\nm.f(1)',
        ("int", 2),
        None,
        id="map-function-member",
    ),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_structs_and_enums(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)


def test_missing_field_names_the_field() -> None:
    with pytest.raises(StelTypeError) as exc_info:
        run_program(POINT + "Point { x: 1 }")

    assert "y" in exc_info.value.message
    assert exc_info.value.line == 2


def test_runtime_values_are_typed() -> None:
    point = run_program(POINT + "Point { x: 1, y: 2 }")
    assert isinstance(point, StlStruct)
    assert point.type_name == "Point"
    assert list(point.fields) == ["x", "y"]

    variant = run_program(SHAPE + "Shape::Rect(3, 4)")
    assert isinstance(variant, StlEnumVariant)
    assert (variant.type_name, variant.tag, len(variant.payload)) == ("Shape", "Rect", 2)


def test_struct_values_are_shared(capsys: pytest.CaptureFixture[str]) -> None:
    source = POINT + dedent(
        """\
        let a = Point { x: 1, y: 2 }
        let b = a
        b.x = 9
        print(a.x)
        print(a)
        """
    )
    assert run_output(source, capsys) == ["9", "Point { x: 9, y: 2 }"]


def test_type_of_user_types(capsys: pytest.CaptureFixture[str]) -> None:
    source = POINT + SHAPE + dedent(
        """\
        print(type_of(Point { x: 1, y: 2 }))
        print(type_of(Shape::Empty))
        """
    )
    assert run_output(source, capsys) == ["Point", "Shape"]
